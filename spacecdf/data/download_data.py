import numpy as np
from warnings import warn

import spacecdf.data.cdf_reader as cdf_reader
import spacecdf.data.data_manipulation as dm
from spacecdf.data.context import DataContext
from spacecdf.data.datasets import get_dataset
from spacecdf.data.util import NoDataError, resolve_files, to_datetime64

# Short names of the bin axes used to label filtered flux
BIN_LABELS = {'energy': 'E', 'pitch_angle': 'PA'}


def request_variables(dataset, sub_type=None, varnames=None, newnames=None):
    '''
    Determine which variables to read and what to call them.

    Parameters
    ----------
    dataset : `DatasetType`
        Dataset descriptor
    sub_type : str
        Probe, spacecraft, or station identifier
    varnames : list of str
        Names of the variables in the file. Defaults to the dataset's
        variable list.
    newnames : list of str
        Output names, one for each of `varnames`. Variables in the default
        list keep their default output name; others keep their file name.

    Returns
    -------
    variables : dict
        Output names keyed by file variable name
    dims : dict
        Dimension names keyed by output name
    fill_vars : list
        Output names of the variables flagged for fill-value replacement
    '''
    defaults = dataset.default_variables(sub_type)

    if varnames is None:
        varnames = list(defaults)
    elif isinstance(varnames, str):
        varnames = [varnames]
    varnames = [dataset.format(name, sub_type) for name in varnames]

    if newnames is None:
        newnames = [defaults.get(name, name) for name in varnames]
    elif isinstance(newnames, str):
        newnames = [newnames]

    if len(varnames) != len(newnames):
        raise ValueError('Number of variable names ({0}) does not match the '
                         'number of new names ({1}).'
                         .format(len(varnames), len(newnames)))

    variables = dict(zip(varnames, newnames))

    # Dimensions and fill flags are defined for the default output names
    dims = {}
    fill_vars = []
    for src, dest in variables.items():
        default = defaults.get(src, src)
        if default in dataset.dims:
            dims[dest] = dataset.dims[default]
        if default in dataset.fill_vars:
            fill_vars.append(dest)

    return variables, dims, fill_vars


def load_data(dataset, sub_type=None, t0=None, t1=None, t=None, files=None,
              version=None, varnames=None, newnames=None, exact=False,
              dt_out=None, uniform=False, ctx=None, prefix='', **kwargs):
    '''
    Read data from a dataset's CDF files.

    Files are located (and downloaded, if necessary), the requested records
    of each variable are read from each file, concatenated in time, and fill
    values are replaced with NaN.

    Parameters
    ----------
    dataset : str or `DatasetType`
        Dataset identifier. See `spacecdf.data.datasets.DATASETS`.
    sub_type : str
        Probe, spacecraft, or station identifier
    t0, t1 : time-like
        Start and end of the data interval, inclusive
    t : time-like
        Single instant. The nearest record within the dataset's cadence is
        read (or the record exactly at `t` if `exact` is True).
    files : list of str or path-like
        Explicit list of files to read. If no time is given, every record is
        read.
    version : str
        Data version. The highest version is used if not given.
    varnames, newnames : list of str
        Variables to read and their output names. See `request_variables`.
    exact : bool
        Match `t` exactly instead of using the nearest record
    dt_out : `numpy.timedelta64` or `datetime.timedelta`
        Resample onto a uniform grid with this sample interval
    uniform : bool
        Put data onto a uniform grid at the dataset's cadence
    ctx : `DataContext`
        If given, each output variable is stored in the context
    prefix : str
        Prefix for the names of variables stored in `ctx`
    **kwargs
        Passed to `spacecdf.data.util.Downloader`

    Returns
    -------
    data : `xarray.Dataset`
        The requested data

    Raises
    ------
    NoDataError
        If no files or records were found
    '''
    dataset = get_dataset(dataset)
    sub_type = dataset.check_sub_type(sub_type)
    variables, dims, fill_vars = request_variables(dataset, sub_type,
                                                   varnames, newnames)

    # Record selection mode and the time range used to find files
    if t is not None:
        if (t0 is not None) or (t1 is not None):
            raise ValueError('Give either a time or a time interval, not both.')
        mode = 'exact' if exact else 'nearest'
        t = to_datetime64(t)
        tr0, tr1 = t, t
        if mode == 'nearest':
            tr0, tr1 = t - dataset.cadence, t + dataset.cadence
    elif t0 is not None:
        if t1 is None:
            raise ValueError('The end of the time interval must be given.')
        mode = 'range'
        t0 = to_datetime64(t0)
        t1 = to_datetime64(t1)
        if t1 < t0:
            raise ValueError('End time {0} is before start time {1}'
                             .format(t1, t0))
        tr0, tr1 = t0, t1
    elif files is not None:
        mode = 'all'
        tr0, tr1 = None, None
    else:
        raise ValueError('A time, a time interval, or a file list must be '
                         'given.')

    descriptors = resolve_files(dataset, t0=tr0, t1=tr1, files=files,
                                sub_type=sub_type, version=version, **kwargs)

    # Read each file
    #   - Files without records in the interval are skipped
    data = []
    time_var = dataset.time_varname(sub_type)
    for fd in descriptors:
        try:
            ds = cdf_reader.read_cdf_vars(fd.path, variables, time_var,
                                          dataset.time_type, dims=dims,
                                          mode=mode, t=t, t0=t0, t1=t1,
                                          cadence=dataset.cadence)
        except NoDataError as E:
            warn('Skipping {0}: {1}'.format(fd.path.name, E))
            continue

        fd.records = ds.attrs.pop('records')
        data.append(ds)

    if not data:
        raise NoDataError('No {0} data found in {1}'
                          .format(dataset.name,
                                  [fd.path.name for fd in descriptors]))

    # The nearest record may be in either of two adjacent files
    if (mode == 'nearest') and (len(data) > 1):
        t_delta = [np.abs(ds['time'].data[0] - t) for ds in data]
        data = [data[int(np.argmin(t_delta))]]

    data = cdf_reader.concat_files(data)
    data = dm.replace_fill(data, fill_vars, fill_value=dataset.fill_value)

    # Uniform time grid
    if uniform or (dt_out is not None):
        if dt_out is not None:
            dt_out = np.timedelta64(dt_out, 'ns')
        if mode != 'range':
            t0 = data['time'].data[0]
            t1 = data['time'].data[-1]
        data = dm.uniform_time(data, t0, t1, dataset.cadence, dt_out=dt_out)

    data.attrs['dataset'] = dataset.name
    if sub_type is not None:
        data.attrs['sub_type'] = sub_type
    data.attrs['files'] = [fd.path.name for fd in descriptors
                           if fd.records is not None]

    if ctx is not None:
        for name, var in data.data_vars.items():
            ctx.store(prefix + name, var)

    return data


def get_data(*args, **kwargs):
    '''
    Read data from a dataset's CDF files, reporting missing data with a flag.

    Takes the same arguments as `load_data`.

    Returns
    -------
    data : `xarray.Dataset`
        The requested data. None if no data was found.
    err : int or str
        0 on success. Otherwise, the reason no data was returned.
    '''
    try:
        return load_data(*args, **kwargs), 0
    except NoDataError as E:
        return None, str(E)


def filter_dataset_flux(data, dataset, energy=None, pitch_angle=None):
    '''
    Select energy and pitch-angle bins of a dataset's flux variable.

    Parameters
    ----------
    data : `xarray.Dataset` or `DataContext`
        Variables of the dataset, under their default output names
    dataset : str or `DatasetType`
        Dataset identifier
    energy, pitch_angle : float or (2) list of float
        Bin selection; see `spacecdf.data.data_manipulation.select_bins`

    Returns
    -------
    flux : `xarray.DataArray`
        The selected flux
    '''
    dataset = get_dataset(dataset)
    if dataset.flux_var is None:
        raise ValueError('Dataset {0} does not have a flux variable.'
                         .format(dataset.name))

    select = {'energy': energy, 'pitch_angle': pitch_angle}
    unknown = [key
               for key, value in select.items()
               if (value is not None) and (key not in dataset.bin_axes)]
    if unknown:
        raise ValueError('Dataset {0} does not have bin axes {1}'
                         .format(dataset.name, unknown))

    axes = dataset.bin_axes.items()
    return dm.filter_flux(data[dataset.flux_var],
                          bins={axis.dim: data[axis.var] for key, axis in axes},
                          select={axis.dim: select.get(key) for key, axis in axes},
                          units={axis.dim: axis.units for key, axis in axes},
                          name={axis.dim: BIN_LABELS.get(key, key)
                                for key, axis in axes})


def get_flux(dataset, sub_type=None, t0=None, t1=None, t=None, energy=None,
             pitch_angle=None, ctx=None, name=None, **kwargs):
    '''
    Read flux from a particle dataset and select energy and pitch-angle
    bins.

    Parameters
    ----------
    dataset : str or `DatasetType`
        Dataset identifier
    sub_type : str
        Probe identifier
    t0, t1, t : time-like
        Time interval or single time; see `load_data`
    energy, pitch_angle : float or (2) list of float
        Bin selection; see `spacecdf.data.data_manipulation.select_bins`
    ctx : `DataContext`
        Context in which to store the result. Intermediate data is removed
        from the context before returning.
    name : str
        Name of the result in `ctx`. Defaults to
        "<dataset>_<sub_type>_<flux variable>".
    **kwargs
        Passed to `load_data`

    Returns
    -------
    flux : `xarray.DataArray`
        The selected flux. None if there is no data.
    err : int or str
        0 on success. Otherwise, the reason no data was returned.
    '''
    dataset = get_dataset(dataset)
    sub_type = dataset.check_sub_type(sub_type)
    if ctx is None:
        ctx = DataContext()
    if name is None:
        name = '_'.join(s for s in (dataset.name, sub_type, dataset.flux_var)
                        if s is not None)

    scratch = '_'.join(('scratch', name)) + '_'
    try:
        load_data(dataset, sub_type=sub_type, t0=t0, t1=t1, t=t,
                  ctx=ctx, prefix=scratch, **kwargs)
        flux = filter_dataset_flux({key[len(scratch):]: ctx[key]
                                    for key in ctx.names(scratch + '*')},
                                   dataset, energy=energy,
                                   pitch_angle=pitch_angle)
    except NoDataError as E:
        return None, str(E)
    finally:
        ctx.delete(*ctx.names(scratch + '*'))

    flux.name = name
    ctx.store(name, flux)
    return flux, 0


def get_rept_data(probe, t0=None, t1=None, t=None, energy=None,
                  pitch_angle=None, **kwargs):
    '''
    Load Van Allen Probes REPT level 3 pitch-angle resolved electron flux.

    Parameters
    ----------
    probe : str
        Probe identifier: {'a', 'b'}
    t0, t1 : time-like
        Start and end of the data interval
    t : time-like
        Single time at which to get the flux
    energy : float or (2) list of float
        Energy (MeV) or energy range
    pitch_angle : float or (2) list of float
        Pitch angle (deg) or pitch-angle range
    **kwargs
        Passed to `get_flux`

    Returns
    -------
    flux : `xarray.DataArray`
        Electron flux
    err : int or str
        0 on success. Otherwise, the reason no data was returned.
    '''
    return get_flux('rbsp_rept_l3', probe, t0=t0, t1=t1, t=t, energy=energy,
                    pitch_angle=pitch_angle, **kwargs)


def get_mageis_data(probe, t0=None, t1=None, t=None, energy=None,
                    pitch_angle=None, **kwargs):
    '''
    Load Van Allen Probes MagEIS level 3 pitch-angle resolved electron flux.
    Energy channels vary from record to record, so the median energy of each
    channel is used for bin selection.

    Parameters
    ----------
    probe : str
        Probe identifier: {'a', 'b'}
    t0, t1 : time-like
        Start and end of the data interval
    t : time-like
        Single time at which to get the flux
    energy : float or (2) list of float
        Energy (keV) or energy range
    pitch_angle : float or (2) list of float
        Pitch angle (deg) or pitch-angle range
    **kwargs
        Passed to `get_flux`

    Returns
    -------
    flux : `xarray.DataArray`
        Electron flux
    err : int or str
        0 on success. Otherwise, the reason no data was returned.
    '''
    return get_flux('rbsp_mageis_l3', probe, t0=t0, t1=t1, t=t,
                    energy=energy, pitch_angle=pitch_angle, **kwargs)


def get_emfisis_data(probe, t0, t1, dt_out=None, **kwargs):
    '''
    Load Van Allen Probes EMFISIS 4-second magnetic field in GSE.

    Parameters
    ----------
    probe : str
        Probe identifier: {'a', 'b'}
    t0, t1 : time-like
        Start and end of the data interval
    dt_out : `numpy.timedelta64`
        Sample interval if the data is to be resampled

    Returns
    -------
    data : `xarray.Dataset`
        Magnetic field and spacecraft position
    err : int or str
        0 on success. Otherwise, the reason no data was returned.
    '''
    data, err = get_data('rbsp_emfisis_l3_4sec_gse', probe, t0=t0, t1=t1,
                         dt_out=dt_out, **kwargs)
    if err:
        return data, err

    data = data.assign_coords({'cart': ['x', 'y', 'z']})
    return data, err


def get_fgm_data(probe, t0, t1, dt_out=None, **kwargs):
    '''
    Load THEMIS FGM spin-resolution magnetic field.

    Parameters
    ----------
    probe : str
        Probe identifier: {'a', 'b', 'c', 'd', 'e'}
    t0, t1 : time-like
        Start and end of the data interval
    dt_out : `numpy.timedelta64`
        Sample interval if the data is to be resampled

    Returns
    -------
    data : `xarray.Dataset`
        Magnetic field
    err : int or str
        0 on success. Otherwise, the reason no data was returned.
    '''
    data, err = get_data('themis_fgm_l2', probe, t0=t0, t1=t1,
                         dt_out=dt_out, **kwargs)
    if err:
        return data, err

    data = data.assign_coords({'cart': ['x', 'y', 'z']})
    return data, err


def get_mms_fgm_data(sc, t0, t1, dt_out=None, **kwargs):
    '''
    Load MMS FGM survey magnetic field. The fourth component of the field
    vector is split off into the field magnitude and records flagged as bad
    are set to NaN.

    Parameters
    ----------
    sc : str
        Spacecraft number: {'1', '2', '3', '4'}
    t0, t1 : time-like
        Start and end of the data interval
    dt_out : `numpy.timedelta64`
        Sample interval if the data is to be resampled

    Returns
    -------
    data : `xarray.Dataset`
        Magnetic field
    err : int or str
        0 on success. Otherwise, the reason no data was returned.
    '''
    data, err = get_data('mms_fgm_srvy_l2', sc, t0=t0, t1=t1, **kwargs)
    if err:
        return data, err

    # Bit 0 of the flag marks bad data
    bad = (data['flag'].astype('int64') & 1) == 1
    b = data['B_GSE'].where(~bad)

    data = data.assign({'B_GSE': (b[:, 0:3]
                                  .rename({'b_index': 'cart'})
                                  .assign_coords({'cart': ['x', 'y', 'z']})),
                        'B_mag': b[:, 3]})

    if dt_out is not None:
        data = dm.uniform_time(data, t0, t1, get_dataset('mms_fgm_srvy_l2').cadence,
                               dt_out=np.timedelta64(dt_out, 'ns'))
    return data, err


def get_asi_data(site, t=None, t0=None, t1=None, exact=False, **kwargs):
    '''
    Load THEMIS all-sky imager full-resolution images.

    Parameters
    ----------
    site : str
        Ground station identifier (e.g. 'gill')
    t : time-like
        Get the image nearest to this time
    t0, t1 : time-like
        Get every image in this interval
    exact : bool
        Require an image exactly at `t`

    Returns
    -------
    data : `xarray.Dataset`
        Images with dimensions (time, row, col)
    err : int or str
        0 on success. Otherwise, the reason no data was returned.
    '''
    return get_data('themis_asi_asf', site, t=t, t0=t0, t1=t1, exact=exact,
                    **kwargs)


def get_omni_data(t0, t1, dt_out=None, **kwargs):
    '''
    Load 1-minute OMNI solar wind and geomagnetic index data.

    Parameters
    ----------
    t0, t1 : time-like
        Start and end of the data interval
    dt_out : `numpy.timedelta64`
        Sample interval if the data is to be resampled

    Returns
    -------
    data : `xarray.Dataset`
        Interplanetary magnetic field (GSE/GSM), flow speed, density,
        SYM-H, and AE
    err : int or str
        0 on success. Otherwise, the reason no data was returned.
    '''
    return get_data('omni_hro_1min', t0=t0, t1=t1, dt_out=dt_out, **kwargs)


def list_files(dataset, t0, t1, sub_type=None, version=None, **kwargs):
    '''
    Print the files covering a time interval. Nothing is raised if no files
    are found.

    Parameters
    ----------
    dataset : str or `DatasetType`
        Dataset identifier
    t0, t1 : time-like
        Start and end of the data interval
    sub_type : str
        Probe, spacecraft, or station identifier
    version : str
        Data version

    Returns
    -------
    files : list of `spacecdf.data.util.FileDescriptor`
        The files. Empty if none were found.
    '''
    dataset = get_dataset(dataset)
    files = resolve_files(dataset, t0=t0, t1=t1, sub_type=sub_type,
                          version=version, best_effort=True, **kwargs)
    if not files:
        print('No {0} data between {1} and {2}'.format(dataset.name, t0, t1))
    for fd in files:
        print(fd.path)
    return files
