import numpy as np
import xarray as xr
from warnings import warn
from scipy.stats import binned_statistic

from spacecdf.data.util import NoDataError, to_datetime64, to_unix


def replace_fill(data, varnames, fill_value=-1e31):
    '''
    Replace fill values with NaN.

    Parameters
    ----------
    data : `xarray.Dataset`
        Data containing the variables
    varnames : list of str
        Variables in which to replace fill values. Names not in `data` are
        ignored.
    fill_value : float
        Fill value used when a variable does not have a FILLVAL attribute

    Returns
    -------
    data : `xarray.Dataset`
        Data with fill values replaced. Integer variables are converted to
        floating point.
    '''
    for name in varnames:
        if name not in data:
            continue

        var = data[name]
        fill = var.attrs.get('FILLVAL', fill_value)
        if not np.issubdtype(var.dtype, np.number):
            continue

        values = var.values.astype('float64')
        if np.isnan(fill):
            continue

        # Compare with a relative tolerance so that float32 fill values
        # (e.g. -1e31 stored as -9.9999998e30) are matched
        mask = np.isclose(values, fill, rtol=1e-6, atol=0)
        values[mask] = np.nan
        data[name] = var.copy(data=values)

    return data


def bin_values(bins):
    '''
    Representative value of each bin.

    Parameters
    ----------
    bins : `xarray.DataArray` or `numpy.ndarray`
        Bin values, either (nbins,) or (time, nbins) when the bins vary
        slightly from record to record

    Returns
    -------
    bins : `numpy.ndarray`
        (nbins,) bin values. Time-varying bins are reduced to their median
        when there are at least two records.
    '''
    bins = np.asarray(bins, dtype='float64')
    if bins.ndim == 1:
        return bins
    elif bins.ndim == 2:
        if bins.shape[0] >= 2:
            return np.nanmedian(bins, axis=0)
        return bins[0, :]

    raise ValueError('Bins must be 1D or 2D, not {0}D'.format(bins.ndim))


def select_bins(bins, values):
    '''
    Select bins by value.

    Parameters
    ----------
    bins : array-like
        (nbins,) bin values
    values : float or (2) list of float
        One value selects the bin equal to that value, or the nearest bin if
        there is no exact match. Two values select every bin within the
        inclusive range.

    Returns
    -------
    idx : `numpy.ndarray` of int
        Indices of the selected bins, in bin order
    '''
    bins = np.asarray(bins, dtype='float64')
    values = np.atleast_1d(np.asarray(values, dtype='float64'))

    if len(values) == 1:
        idx = np.flatnonzero(bins == values[0])
        if len(idx) == 0:
            idx = np.array([np.nanargmin(np.abs(bins - values[0]))])
        return idx[0:1]

    elif len(values) == 2:
        vmin, vmax = np.min(values), np.max(values)
        idx = np.flatnonzero((bins >= vmin) & (bins <= vmax))
        if len(idx) == 0:
            raise NoDataError('No bins in range [{0}, {1}]. Bins are {2}'
                              .format(vmin, vmax, bins))
        return idx

    raise ValueError('Wrong number of range endpoints: expected 1 or 2, '
                     'got {0}'.format(len(values)))


def filter_flux(flux, bins, select, units=None, name=None):
    '''
    Sub-select the energy and/or pitch-angle bins of a flux array.

    Dimensions with a single selected bin are collapsed. The result is
    tagged with how it should be displayed:
        'time_series'  - every bin dimension was collapsed
        'spectrogram'  - one bin dimension remains
        'distribution' - two bin dimensions remain

    Parameters
    ----------
    flux : `xarray.DataArray`
        Flux with dimensions (time, ...)
    bins : dict
        Bin values keyed by dimension name. Values may be (nbins,) or
        (time, nbins); see `bin_values`.
    select : dict
        Bin selection keyed by dimension name; see `select_bins`. None
        keeps every bin of that dimension.
    units : dict
        Units of the bins of each dimension
    name : dict
        Short name of the bins of each dimension, used to build the short
        name of the result (e.g. {'energy_index': 'E'})

    Returns
    -------
    flux : `xarray.DataArray`
        The selected flux
    '''
    if units is None:
        units = {}
    if name is None:
        name = {}

    short_name = [flux.name]
    collapsed = {}
    for dim, values in bins.items():
        values = bin_values(values)
        idx = np.arange(len(values))
        if select.get(dim) is not None:
            idx = select_bins(values, select[dim])

        # Collapse dimensions that have a single bin
        if len(idx) == 1:
            flux = flux.isel({dim: int(idx[0])}, drop=True)
            collapsed[dim] = values[idx[0]]
            short_name.append('{0}={1:g}{2}'.format(name.get(dim, dim),
                                                    values[idx[0]],
                                                    units.get(dim, '')))
        else:
            flux = (flux.isel({dim: idx})
                    .assign_coords({dim: values[idx]}))
            flux[dim].attrs['units'] = units.get(dim, '')

    display_type = {0: 'time_series',
                    1: 'spectrogram',
                    2: 'distribution'}.get(len(bins) - len(collapsed))
    if display_type is None:
        raise ValueError('Flux has more than two bin dimensions: {0}'
                         .format(tuple(bins)))

    flux.attrs['display_type'] = display_type
    flux.attrs['units'] = flux.attrs.get('UNITS', flux.attrs.get('units', ''))
    flux.attrs['short_name'] = ' '.join(str(n) for n in short_name)
    for dim, value in collapsed.items():
        flux.attrs[dim] = value

    return flux


def generate_time_stamps(t_start, t_stop, t_res=np.timedelta64(5, 's')):
    '''
    Create an array of times spanning a time interval with a specified resolution.

    Parameters
    ----------
    t_start, t_stop : `numpy.datetime64`
        Start and end of the time interval, given as the begin times of the first
        and last samples
    t_res : `numpy.timedelta64`
        Sample interval

    Returns
    -------
    t_stamps : `numpy.datetime64`
        Timestamps spanning the given time interval and with the given resolution. Note
        that the last point in the array is the end time of the last sample. This is to
        work better with `scipy.binned_statistic`.
    '''
    t_start = np.datetime64(t_start, 'ns')
    t_stop = np.datetime64(t_stop, 'ns')
    t_res = np.timedelta64(t_res, 'ns')

    # Find the start time
    #   - Grid points are multiples of `t_res` from the start of the day
    t_ref = t_start.astype('datetime64[D]').astype('datetime64[ns]')
    t_start = t_start - ((t_start - t_ref) % t_res)

    # Find the end time -- it should be after the final time and on the grid
    dt_round = (t_stop - t_start) % t_res
    t_stop += (t_res - dt_round)

    #  - We want t_stop to be included in the array as the right-most edge of the time interval
    t_stamps = np.arange(t_start, t_stop + t_res, t_res)

    return t_stamps


def binned_avg_ds(ds, t_out):
    '''
    Resample data by averaging into temporal bins. NaN values are ignored.

    Parameters
    ----------
    ds : `xarray.Dataset`
        Data to be averaged
    t_out : `numpy.datetime64`
        Bin edges into which data should be averaged

    Returns
    -------
    avg : `xarray.Dataset`
        Resampled data with time stamps at the leading edge of each bin
    '''
    # scipy does not like datetime64 so time has to be converted to floats
    t_ref = t_out[0]
    t_bins = (t_out - t_ref).astype('float')
    t_in = (ds['time'].data - t_ref).astype('float')

    vars_out = {}
    for name, var in ds.data_vars.items():
        if 'time' not in var.dims:
            vars_out[name] = var
            continue

        # Average each element of the array independently
        var = var.transpose('time', ...)
        values = var.data.reshape(var.shape[0], -1).astype('float64').T
        finite = np.isfinite(values)

        total, bin_edges, binnum = binned_statistic(
            t_in, np.where(finite, values, 0), statistic='sum', bins=t_bins)
        count, bin_edges, binnum = binned_statistic(
            t_in, finite.astype('float64'), statistic='sum', bins=t_bins)

        with np.errstate(invalid='ignore', divide='ignore'):
            avg = total / count

        avg = avg.T.reshape((len(t_out) - 1, *var.shape[1:]))
        coords = {key: coord for key, coord in var.coords.items()
                  if 'time' not in coord.dims}
        coords['time'] = t_out[:-1]
        vars_out[name] = xr.DataArray(avg, dims=var.dims, coords=coords,
                                      attrs=var.attrs)

    return xr.Dataset(vars_out, attrs=ds.attrs)


def uniform_time(data, t0, t1, cadence, dt_out=None):
    '''
    Put data onto a uniform time grid.

    Parameters
    ----------
    data : `xarray.Dataset`
        Data with a "time" coordinate
    t0, t1 : time-like
        Start and end of the output time grid
    cadence : `numpy.timedelta64`
        Nominal sample interval of `data`
    dt_out : `numpy.timedelta64`
        Sample interval of the output grid. Defaults to `cadence`.

    Returns
    -------
    data : `xarray.Dataset`
        Data on the uniform grid. A "unix_time" coordinate (seconds since
        1970-01-01) is added, and "dt_plus" and "dt_minus" give the extent of
        each sample relative to its time stamp.
    '''
    cadence = np.timedelta64(cadence, 'ns')
    if dt_out is None:
        dt_out = cadence
    dt_out = np.timedelta64(dt_out, 'ns')

    t_out = generate_time_stamps(to_datetime64(t0), to_datetime64(t1), dt_out)

    # Reindexing requires sorted, unique time stamps
    data = data.sortby('time')
    _, idx = np.unique(data['time'].data, return_index=True)
    if len(idx) != data.sizes['time']:
        warn('Removing {0} duplicate time stamps'
             .format(data.sizes['time'] - len(idx)))
        data = data.isel(time=idx)

    # Downsample
    #   - Two or more samples per target sampling interval
    if cadence <= 0.5 * dt_out:
        data = binned_avg_ds(data, t_out)

    # Same sampling interval or upsample
    #   - Nearest neighbor, without filling data gaps longer than one sample
    else:
        tolerance = cadence if cadence > dt_out else 0.5 * dt_out
        n_gaps = int((np.diff(data['time'].data) > 1.5 * cadence).sum())
        if n_gaps > 0:
            warn('{0} data gaps found in dataset'.format(n_gaps))
        data = data.reindex(time=t_out[:-1], method='nearest',
                            tolerance=tolerance)

    return data.assign_coords({'unix_time': ('time', to_unix(data['time'].data)),
                               'dt_plus': dt_out,
                               'dt_minus': np.timedelta64(0, 's')})
