import argparse
from matplotlib import pyplot as plt
from spacecdf.data import download_data as dd
from spacecdf import plots


def main():
    parser = argparse.ArgumentParser(
        description='Select energy and pitch-angle bins of particle flux and '
                    'save to netCDF.'
    )

    parser.add_argument('dataset',
                        type=str,
                        help='Dataset identifier: rbsp_rept_l3, rbsp_mageis_l3')

    parser.add_argument('sub_type',
                        type=str,
                        help='Probe identifier')

    parser.add_argument('start_date',
                        type=str,
                        help='Start date of the data interval: '
                             '"YYYY-MM-DDTHH:MM:SS"'
                        )

    parser.add_argument('end_date',
                        type=str,
                        help='End date of the data interval: '
                             '"YYYY-MM-DDTHH:MM:SS"'
                        )

    parser.add_argument('-e', '--energy',
                        default=None,
                        type=float,
                        nargs='+',
                        help='Energy or energy range')

    parser.add_argument('-p', '--pitch_angle',
                        default=None,
                        type=float,
                        nargs='+',
                        help='Pitch angle or pitch-angle range (deg)')

    parser.add_argument('-o', '--outfile',
                        default=None,
                        type=str,
                        help='Output file name')

    parser.add_argument('--plot',
                        help='Plot the flux',
                        action='store_true')

    args = parser.parse_args()

    flux, err = dd.get_flux(args.dataset, args.sub_type,
                            t0=args.start_date, t1=args.end_date,
                            energy=args.energy, pitch_angle=args.pitch_angle)
    if err:
        print(err)
        return

    outfile = args.outfile
    if outfile is None:
        outfile = flux.name + '.nc'
    flux.to_netcdf(outfile)
    print(outfile)

    if args.plot:
        plots.plot_flux(flux)
        plt.show()


if __name__ == '__main__':
    main()
