import argparse
from spacecdf.data import cdf_reader, download_data as dd


def main():
    parser = argparse.ArgumentParser(
        description='List the files of a dataset that cover a time interval '
                    'and the variables they contain.'
    )

    parser.add_argument('dataset',
                        type=str,
                        help='Dataset identifier (e.g. rbsp_rept_l3)')

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

    args = parser.parse_args()

    files = dd.list_files(args.dataset, args.start_date, args.end_date,
                          sub_type=args.sub_type)
    for fd in files:
        print('{0}:'.format(fd.path.name))
        for name in cdf_reader.file_variables(fd.path):
            print('    {0}'.format(name))


if __name__ == '__main__':
    main()
