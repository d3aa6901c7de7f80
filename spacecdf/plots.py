import numpy as np
from matplotlib import pyplot as plt, dates as mdates, ticker
from matplotlib.colors import LogNorm
from mpl_toolkits.axes_grid1.inset_locator import inset_axes


def add_colorbar(ax, im, label='', wpad=1.05):
    '''
    Add a colorbar to the right of the axes.

    Parameters
    ----------
    ax : `matplotlib.axes.Axes`
        Axes to which the colorbar is attached.
    im : `matplotlib.collections.QuadMesh`
        The image that the colorbar will represent.
    label : str
        Colorbar label
    '''
    cbaxes = inset_axes(ax,
                        width='2%', height='100%', loc=4,
                        bbox_to_anchor=(0, 0, wpad, 1),
                        bbox_transform=ax.transAxes,
                        borderpad=0)
    cb = plt.colorbar(im, cax=cbaxes, orientation='vertical')
    cb.ax.minorticks_on()
    cb.ax.get_yaxis().labelpad = 15
    cb.ax.set_ylabel(label, rotation=270)

    return cb


def format_time_axis(ax):
    '''Label the x-axis with concise dates.'''
    locator = mdates.AutoDateLocator()
    formatter = mdates.ConciseDateFormatter(locator)
    ax.xaxis.set_major_locator(locator)
    ax.xaxis.set_major_formatter(formatter)
    ax.xaxis.set_minor_locator(ticker.AutoMinorLocator())
    for tick in ax.get_xticklabels():
        tick.set_rotation(45)


def _bin_label(coord):
    units = coord.attrs.get('units', '')
    if units:
        return '{0} ({1})'.format(coord.name, units)
    return str(coord.name)


def _flux_norm(values):
    # Flux spans orders of magnitude; fall back to linear when nothing is positive
    positive = values[np.isfinite(values) & (values > 0)]
    if positive.size == 0:
        return None
    return LogNorm(vmin=positive.min(), vmax=positive.max())


def plot_flux(flux, ax=None):
    '''
    Quick-look plot of filtered flux. The kind of plot is chosen by the
    "display_type" attribute:
        'time_series'  - line plot of flux versus time
        'spectrogram'  - flux versus time and the remaining bin dimension
        'distribution' - flux of the first record versus both bin dimensions

    Parameters
    ----------
    flux : `xarray.DataArray`
        Output of `spacecdf.data.data_manipulation.filter_flux`
    ax : `matplotlib.axes.Axes`
        Axes in which to plot. A new figure is created if not given.

    Returns
    -------
    fig : `matplotlib.figure.Figure`
        The figure
    ax : `matplotlib.axes.Axes`
        The axes
    '''
    display_type = flux.attrs.get('display_type')
    if display_type not in ('time_series', 'spectrogram', 'distribution'):
        raise ValueError('Cannot plot flux with display type "{0}"'
                         .format(display_type))

    if ax is None:
        fig, ax = plt.subplots(nrows=1, ncols=1)
    else:
        fig = ax.get_figure()

    label = 'Flux'
    if flux.attrs.get('units'):
        label = 'Flux\n({0})'.format(flux.attrs['units'])

    if display_type == 'time_series':
        ax.plot(flux['time'].data, flux.data)
        ax.set_ylabel(label)
        if np.any(flux.data > 0):
            ax.set_yscale('log')
        format_time_axis(ax)

    elif display_type == 'spectrogram':
        dim = [d for d in flux.dims if d != 'time'][0]
        values = flux.transpose(dim, 'time').data
        im = ax.pcolormesh(flux['time'].data, flux[dim].data, values,
                           norm=_flux_norm(values), shading='auto')
        ax.set_ylabel(_bin_label(flux[dim]))
        format_time_axis(ax)
        add_colorbar(ax, im, label=label)

    else:
        ydim, xdim = [d for d in flux.dims if d != 'time']
        if 'time' in flux.dims:
            flux = flux.isel(time=0)
        values = flux.transpose(ydim, xdim).data
        im = ax.pcolormesh(flux[xdim].data, flux[ydim].data, values,
                           norm=_flux_norm(values), shading='auto')
        ax.set_xlabel(_bin_label(flux[xdim]))
        ax.set_ylabel(_bin_label(flux[ydim]))
        if 'time' in flux.coords:
            ax.set_title(str(flux['time'].data))
        add_colorbar(ax, im, label=label)

    if display_type != 'distribution':
        ax.set_title(flux.attrs.get('short_name', ''))

    return fig, ax
