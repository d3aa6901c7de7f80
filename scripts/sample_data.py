import argparse
import numpy as np
from spacecdf.data import download_data as dd


def main():
    parser = argparse.ArgumentParser(
        description='Read data from a CDF dataset and save to netCDF.'
    )

    parser.add_argument('dataset',
                        type=str,
                        help='Dataset identifier (e.g. rbsp_emfisis_l3_4sec_gse)')

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

    parser.add_argument('-s', '--sub_type',
                        default=None,
                        type=str,
                        help='Probe, spacecraft, or station identifier')

    parser.add_argument('-dt', '--sample_interval',
                        default=None,
                        type=float,
                        help='Time interval (seconds) at which to resample the data',
                        )

    parser.add_argument('-v', '--version',
                        default=None,
                        type=str,
                        help='Data version (e.g. "1.3.2")')

    parser.add_argument('-o', '--outfile',
                        default=None,
                        type=str,
                        help='Output file name')

    args = parser.parse_args()

    dt_out = None
    if args.sample_interval is not None:
        dt_out = np.timedelta64(int(args.sample_interval * 1e9), 'ns')

    data, err = dd.get_data(args.dataset, args.sub_type,
                            t0=args.start_date, t1=args.end_date,
                            version=args.version, dt_out=dt_out)
    if err:
        print(err)
        return

    outfile = args.outfile
    if outfile is None:
        outfile = '_'.join(s for s in (args.dataset, args.sub_type,
                                       args.start_date.replace(':', ''),
                                       args.end_date.replace(':', ''))
                           if s is not None) + '.nc'

    # netCDF attributes cannot hold lists
    data.attrs['files'] = ' '.join(data.attrs['files'])
    data.to_netcdf(outfile)
    print(outfile)


if __name__ == '__main__':
    main()
