from pathlib import Path

import numpy as np
import xarray as xr
import cdflib

from spacecdf.data.util import NoDataError, to_datetime64


def cdf_variables(cdf):
    '''Names of all z- and r-variables in an open CDF file.'''
    info = cdf.cdf_info()
    return list(info.zVariables) + list(info.rVariables)


def file_variables(path):
    '''Names of the variables in a CDF file.'''
    return cdf_variables(cdflib.CDF(str(path)))


def convert_time(data, time_type):
    '''
    Convert time stamps read from a file to `numpy.datetime64[ns]`.

    Parameters
    ----------
    data : `numpy.ndarray`
        Raw time stamps
    time_type : str
        Representation of `data`: 'cdf_epoch', 'cdf_tt2000', or 'unix'
        (seconds since 1970-01-01)

    Returns
    -------
    time : `numpy.ndarray` of `numpy.datetime64`
        Converted time stamps
    '''
    if data is None:
        return np.array([], dtype='datetime64[ns]')

    # Files with a single record may return a scalar
    data = np.atleast_1d(data)

    if time_type == 'unix':
        ns = np.round(np.asarray(data, dtype='float64') * 1e9)
        return ns.astype('int64').astype('datetime64[ns]')
    elif time_type in ('cdf_epoch', 'cdf_tt2000'):
        return np.asarray(cdflib.cdfepoch.to_datetime(data),
                          dtype='datetime64[ns]')
    else:
        raise ValueError('Invalid time type "{0}"'.format(time_type))


def select_records(time, mode='all', t=None, t0=None, t1=None, cadence=None):
    '''
    Determine which records of a file to read.

    Parameters
    ----------
    time : `numpy.ndarray` of `numpy.datetime64`
        Time stamps of every record in the file, sorted
    mode : str
        Selection mode:
            'all'     - every record
            'nearest' - the record closest to `t`, within `cadence`
            'exact'   - the record whose time stamp equals `t`
            'range'   - the records within [t0, t1], inclusive
    t : time-like
        Requested instant for 'nearest' and 'exact' modes
    t0, t1 : time-like
        Requested interval for 'range' mode
    cadence : `numpy.timedelta64`
        Nominal sample interval. Nearest records farther than this from `t`
        are rejected.

    Returns
    -------
    istart, istop : int
        Inclusive record range
    '''
    if len(time) == 0:
        raise NoDataError('File contains no records.')

    if mode == 'all':
        return 0, len(time) - 1

    elif mode == 'nearest':
        t = to_datetime64(t)
        t_delta = np.abs(time - t)
        idx = int(np.argmin(t_delta))
        if (cadence is not None) and (t_delta[idx] > cadence):
            raise NoDataError('Nearest record ({0}) is more than {1} from {2}'
                              .format(time[idx], cadence, t))
        return idx, idx

    elif mode == 'exact':
        t = to_datetime64(t)
        idx = np.flatnonzero(time == t)
        if len(idx) == 0:
            raise NoDataError('No record at {0}'.format(t))
        return int(idx[0]), int(idx[0])

    elif mode == 'range':
        t0 = to_datetime64(t0)
        t1 = to_datetime64(t1)
        istart = int(np.searchsorted(time, t0, side='left'))
        istop = int(np.searchsorted(time, t1, side='right')) - 1
        if istart > istop:
            raise NoDataError('No records between {0} and {1}'
                              .format(t0, t1))
        return istart, istop

    raise ValueError('"{0}" is not a valid record selection mode. Choose '
                     'from (all, nearest, exact, range)'.format(mode))


def _clean_attrs(attrs):
    '''Keep attributes that can be written to netCDF.'''
    out = {}
    for key, value in attrs.items():
        if isinstance(value, np.ndarray):
            if value.size != 1:
                continue
            value = value.item()
        if isinstance(value, (str, int, float, np.integer, np.floating)):
            out[key] = value
    return out


def read_var(cdf, src, dest, records=None, dims=None):
    '''
    Read one variable from an open CDF file.

    Parameters
    ----------
    cdf : `cdflib.CDF`
        The open file
    src : str
        Name of the variable in the file
    dest : str
        Name of the output variable
    records : tuple of int
        Inclusive record range. Ignored for variables that do not vary by
        record.
    dims : tuple of str
        Dimension names. The first dimension of record-varying variables is
        "time". Generated from `dest` if not given.

    Returns
    -------
    data : `xarray.DataArray`
        The variable with its CDF attributes
    '''
    info = cdf.varinq(src)
    rec_vary = bool(info.Rec_Vary)
    dim_sizes = tuple(info.Dim_Sizes)

    if rec_vary:
        istart, istop = records
        data = np.asarray(cdf.varget(src, startrec=istart, endrec=istop))

        # Single records come back without a record dimension
        if data.ndim != len(dim_sizes) + 1:
            data = data.reshape((istop - istart + 1, *dim_sizes))
    else:
        data = np.asarray(cdf.varget(src))

    if dims is None:
        dims = tuple('{0}_dim{1}'.format(dest, idx)
                     for idx in range(1 if rec_vary else 0, data.ndim))
        if rec_vary:
            dims = ('time',) + dims
    elif len(dims) != data.ndim:
        raise ValueError('Variable {0} has {1} dimensions, but {2} dimension '
                         'names were given: {3}'
                         .format(src, data.ndim, len(dims), dims))

    attrs = _clean_attrs(cdf.varattsget(src))
    attrs['rec_vary'] = np.int8(rec_vary)
    return xr.DataArray(data, dims=dims, name=dest, attrs=attrs)


def read_cdf_vars(path, variables, time_var, time_type, dims=None,
                  mode='all', t=None, t0=None, t1=None, cadence=None):
    '''
    Read variables from a CDF file into a dataset.

    Parameters
    ----------
    path : str or path-like
        CDF file to be read
    variables : dict
        Source variable names (keys) and the names they are given in the
        output (values)
    time_var : str
        Name of the time variable that serves as the "time" coordinate
    time_type : str
        Representation of the time variable ('cdf_epoch', 'cdf_tt2000',
        'unix')
    dims : dict
        Dimension names of output variables, keyed by output name
    mode, t, t0, t1, cadence
        Record selection. See `select_records`.

    Returns
    -------
    data : `xarray.Dataset`
        The selected records of each variable
    '''
    if dims is None:
        dims = {}

    path = Path(path)
    cdf = cdflib.CDF(str(path))

    missing = [name
               for name in (time_var, *variables)
               if name not in cdf_variables(cdf)]
    if missing:
        raise NoDataError('Variables {0} not found in {1}'
                          .format(missing, path.name))

    time = convert_time(cdf.varget(time_var), time_type)
    istart, istop = select_records(time, mode=mode, t=t, t0=t0, t1=t1,
                                   cadence=cadence)

    data = xr.Dataset(coords={'time': time[istart:istop + 1]})
    for src, dest in variables.items():
        data[dest] = read_var(cdf, src, dest, records=(istart, istop),
                              dims=dims.get(dest))
    data.attrs['records'] = (istart, istop)

    return data


def concat_files(data):
    '''
    Concatenate data read from several files along the time dimension.

    Variables that do not depend on time are taken from the earliest file.

    Parameters
    ----------
    data : list of `xarray.Dataset`
        Data from each file

    Returns
    -------
    data : `xarray.Dataset`
        Combined data in ascending time order of the files
    '''
    if not data:
        raise NoDataError('No data to concatenate.')

    data = sorted(data, key=lambda ds: ds['time'].values[0])
    if len(data) == 1:
        return data[0]

    return xr.concat(data, dim='time', data_vars='minimal', coords='minimal',
                     compat='override', combine_attrs='drop_conflicts')
