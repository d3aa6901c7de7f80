from fnmatch import fnmatch


class DataContext():
    '''
    Named storage for the time series produced while processing one
    request.

    A context is created by the caller and handed to each stage of the
    pipeline, so intermediate results are never shared between unrelated
    requests. Values are usually `xarray.DataArray` objects with a "time"
    dimension and, optionally, a secondary axis (energy, pitch angle, ...).
    '''

    def __init__(self):
        self._data = {}

    def __contains__(self, name):
        return name in self._data

    def __getitem__(self, name):
        return self.get(name)

    def __len__(self):
        return len(self._data)

    def __repr__(self):
        return 'DataContext({0})'.format(', '.join(self._data))

    def store(self, name, data):
        '''
        Store data under a name, replacing anything already stored there.

        Parameters
        ----------
        name : str
            Name of the time series
        data : `xarray.DataArray`
            The time series
        '''
        self._data[name] = data

    def get(self, name):
        '''
        Retrieve a stored time series.

        Raises
        ------
        KeyError
            If nothing is stored under `name`
        '''
        try:
            return self._data[name]
        except KeyError:
            raise KeyError('No time series named "{0}". Stored names: {1}'
                           .format(name, self.names())) from None

    def delete(self, *names):
        '''Remove time series. Names that are not stored are ignored.'''
        for name in names:
            self._data.pop(name, None)

    def names(self, pattern='*'):
        '''Names of the stored time series matching a glob pattern.'''
        return [name for name in self._data if fnmatch(name, pattern)]
