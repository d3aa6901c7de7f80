import datetime as dt
from dateutil.relativedelta import relativedelta
from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import Path
from warnings import warn
import re

import numpy as np
import pandas as pd

# HTML
import requests
from bs4 import BeautifulSoup
from tqdm import tqdm

from spacecdf import config
from spacecdf.data.datasets import get_dataset


class NoDataError(Exception):
    '''No files, records, or bins were found for the request.'''
    pass


@dataclass
class FileDescriptor:
    '''
    A local data file covering part of a time range.

    Attributes
    ----------
    path : `pathlib.Path`
        Absolute path to the file
    interval : tuple of `datetime.datetime`
        Nominal start and end time of the file. None for files given
        explicitly by the caller.
    records : tuple of int
        Inclusive (start, stop) record range to read. None for all records.
    '''
    path: Path
    interval: tuple = None
    records: tuple = None


def to_datetime64(time):
    '''
    Convert a time to `numpy.datetime64[ns]`.

    Parameters
    ----------
    time : str, int, float, `datetime.datetime`, or `numpy.datetime64`
        The time. Numbers are unix seconds; strings are calendar times
        (e.g. "2017-05-27T06:00:00"). Time-zone aware times are converted
        to UTC.

    Returns
    -------
    time : `numpy.datetime64`
        The time with nanosecond precision
    '''
    if isinstance(time, (int, float, np.integer, np.floating)):
        time = pd.Timestamp(time, unit='s')
    else:
        time = pd.Timestamp(time)
    if time.tzinfo is not None:
        time = time.tz_convert('UTC').tz_localize(None)
    return time.to_datetime64().astype('datetime64[ns]')


def to_datetime(time):
    return pd.Timestamp(to_datetime64(time)).to_pydatetime()


def to_unix(time):
    '''Convert `numpy.datetime64` times to unix seconds.'''
    time = np.asarray(time, dtype='datetime64[ns]')
    return (time - np.datetime64(0, 'ns')) / np.timedelta64(1, 's')


def parse_version(filename):
    '''
    Version number of a file name (e.g. "..._v5.4.0.cdf" -> (5, 4, 0)).
    Files without a version number sort before all others.
    '''
    match = re.search(r'_v(\d+(?:[._]\d+)*)\.\w+$', Path(filename).name)
    if match is None:
        return ()
    return tuple(int(v) for v in re.split(r'[._]', match.group(1)))


def newest_version(files):
    '''
    Select the file with the highest version number.

    Parameters
    ----------
    files : list of str or path-like
        Candidate files covering the same interval

    Returns
    -------
    file : str or path-like
        File with the highest version. None if `files` is empty.
    '''
    if not files:
        return None
    return max(files, key=parse_version)


class Downloader():
    '''
    Locate and download the files of a single dataset.

    Parameters
    ----------
    dataset : str or `spacecdf.data.datasets.DatasetType`
        Dataset identifier
    sub_type : str
        Probe, spacecraft, or station identifier
    version : str
        Exact version to retrieve (e.g. "5.4.0"). If not given, the highest
        version found is used.
    local_root, remote_root : str or path-like
        Override `config.data_root` and the dataset's remote root
    max_age : `datetime.timedelta`
        Local files older than this are refreshed from the remote archive
    no_download : bool
        Search only the local file system
    '''

    def __init__(self, dataset, sub_type=None, version=None,
                 local_root=None, remote_root=None, max_age=None,
                 no_download=None):
        self.dataset = get_dataset(dataset)
        self.sub_type = self.dataset.check_sub_type(sub_type)
        self.version = version
        self._local_root = local_root
        self._remote_root = remote_root
        self._max_age = max_age
        self._no_download = no_download

    @property
    def local_root(self):
        if self._local_root is None:
            return Path(config.data_root)
        return Path(self._local_root)

    @property
    def remote_root(self):
        if self._remote_root is not None:
            return self._remote_root
        if self.dataset.remote_root is not None:
            return self.dataset.remote_root
        return config.spdf_url

    @property
    def max_age(self):
        if self._max_age is not None:
            return self._max_age
        if self.dataset.max_age is not None:
            return self.dataset.max_age
        return config.max_age

    @property
    def no_download(self):
        if self._no_download is None:
            return config.no_download
        return self._no_download

    def intervals(self, start_time, end_time):
        '''
        Break the time interval down into a set of intervals associated
        with individual file names.

        Parameters
        ----------
        start_time, end_time : datetime.datetime
            Start and end times of the data interval

        Returns
        -------
        intervals : list of tuples
            Time intervals (start_time, end_time) associated with individual
            data files
        '''
        if end_time < start_time:
            raise ValueError('End time {0} is before start time {1}'
                             .format(end_time, start_time))

        func = {'hourly': self.intervals_hourly,
                'daily': self.intervals_daily,
                'monthly': self.intervals_monthly,
                'yearly': self.intervals_yearly}[self.dataset.file_cadence]
        return func(start_time, end_time)

    @staticmethod
    def intervals_hourly(start_time, end_time):
        '''
        Break down a time interval into sub-intervals that are one hour long.
        Minute and second fields are ignored if present.

        Parameters
        ----------
        start_time, end_time : `datetime.datetime`
            Start and end times of the time interval

        Returns
        -------
        intervals : list of `datetime.datetime` tuples
            Sub-intervals of duration one hour
        '''
        time = start_time.replace(minute=0, second=0, microsecond=0)
        intervals = []
        while time <= end_time:
            intervals.append((time, time + dt.timedelta(hours=1)
                              - dt.timedelta(microseconds=1)))
            time += dt.timedelta(hours=1)
        return intervals

    @staticmethod
    def intervals_daily(start_time, end_time):
        '''
        Break down a time interval into sub-intervals that are one day long.
        Hour, minute, and second fields are ignored if present.

        Parameters
        ----------
        start_time, end_time : `datetime.datetime`
            Start and end times of the time interval

        Returns
        -------
        intervals : list of `datetime.datetime` tuples
            Sub-intervals of duration one day
        '''
        ndays = (end_time.date() - start_time.date()).days + 1
        dates = [start_time.date() + dt.timedelta(days=n)
                 for n in range(0, ndays)]

        intervals = [(dt.datetime.combine(d, dt.time(0)),
                      dt.datetime.combine(d, dt.time(23, 59, 59, 999999)))
                     for d in dates]

        return intervals

    @staticmethod
    def intervals_monthly(start_time, end_time):
        '''
        Break down a time interval into sub-intervals that are one month long.
        Day, hour, minute, and second fields are ignored if present.

        Parameters
        ----------
        start_time, end_time : `datetime.datetime`
            Start and end times of the time interval

        Returns
        -------
        intervals : list of `datetime.datetime` tuples
            Sub-intervals of duration one month
        '''
        intervals = []
        time = dt.datetime(start_time.year, start_time.month, 1)
        while time <= end_time:
            times = (time, time + relativedelta(months=+1)
                     - dt.timedelta(microseconds=1))
            intervals.append(times)
            time += relativedelta(months=+1)

        return intervals

    @staticmethod
    def intervals_yearly(start_time, end_time):
        '''
        Break down a time interval into sub-intervals that are one year long.
        Month, day, hour, minute, and second fields are ignored if present.

        Parameters
        ----------
        start_time, end_time : `datetime.datetime`
            Start and end times of the time interval

        Returns
        -------
        intervals : list of `datetime.datetime` tuples
            Sub-intervals of duration one year
        '''
        # Each year from beginning to end
        #  - Add the right end point to the last interval
        nyears = end_time.year - start_time.year + 2
        dates = [dt.datetime(start_time.year + n, 1, 1, 0)
                 for n in range(0, nyears)]

        # Intervals span from one year up to the next year minus one microsecond
        intervals = [(d0, d1 - dt.timedelta(microseconds=1))
                     for d0, d1 in zip(dates[:-1], dates[1:])]

        return intervals

    def fname(self, interval):
        '''
        Create the file name associated with a given interval. Unless a
        version was given, the version number is a wildcard.

        Parameters
        ----------
        interval : tuple of datetime.datetime
            Start and end time of the data interval

        Returns
        -------
        filename : str
            File name or glob pattern
        '''
        fname = self.dataset.format(self.dataset.fname, self.sub_type)
        if self.version is not None:
            fname = fname.replace('v*', 'v' + self.version)
        return interval[0].strftime(fname)

    def local_dir(self, interval):
        '''
        Local directory for a given interval, relative to the local root.

        Parameters
        ----------
        interval : tuple of datetime.datetime
            Start and end time of the data interval

        Returns
        -------
        dir : pathlib.Path
            Local directory
        '''
        local_dir = self.dataset.local_dir
        if local_dir is None:
            local_dir = self.dataset.remote_dir
        return Path(interval[0].strftime(
            self.dataset.format(local_dir, self.sub_type)))

    def local_path(self, interval, fname=None):
        '''
        Absolute path to a single file.

        Parameters
        ----------
        interval : tuple of datetime.datetime
            Start and end time associated with a single file
        fname : str
            File name. If not given, the (possibly wildcard) name from
            `fname()` is used.

        Returns
        -------
        path : `pathlib.Path`
            Absolute file path
        '''
        if fname is None:
            fname = self.fname(interval)
        return self.local_root / self.local_dir(interval) / fname

    def remote_url(self, interval):
        '''URL of the remote directory holding the file for `interval`.'''
        remote_dir = interval[0].strftime(
            self.dataset.format(self.dataset.remote_dir, self.sub_type))
        return '/'.join((self.remote_root.rstrip('/'), remote_dir.strip('/'))) + '/'

    def search_local(self, interval):
        '''
        Search for files on the local system.

        Parameters
        ----------
        interval : tuple of `datetime.datetime`
            The start and end times of the file interval

        Returns
        -------
        local_files : list of `pathlib.Path`
            Files matching the file name pattern, in the local root and the
            read-only mirror
        '''
        roots = [self.local_root]
        if config.mirror_root is not None:
            roots.append(Path(config.mirror_root))

        result = []
        for root in roots:
            path = root / self.local_dir(interval)
            result += sorted(path.glob(self.fname(interval)))

        return result

    def search_remote(self, interval):
        '''
        Find valid file names by searching the remote directory listing.

        Parameters
        ----------
        interval : tuple of `datetime.datetime`
            The start and end times of the file interval

        Returns
        -------
        remote_files : list of str
            Names of the remote files matching the file name pattern
        '''
        response = requests.get(self.remote_url(interval),
                                timeout=config.timeout)

        # Directories are created as data arrive. A missing directory
        # means there is no data.
        if response.status_code == 404:
            return []
        response.raise_for_status()

        # File names are embedded as HTML links
        pattern = self.fname(interval)
        soup = BeautifulSoup(response.text, 'html.parser')
        fnames = [Path(a['href']).name
                  for a in soup.find_all('a', href=True)]
        return sorted(set(f for f in fnames if fnmatch(f, pattern)))

    def is_stale(self, path):
        '''Check if a local file is older than `max_age`.'''
        age = dt.datetime.now().timestamp() - Path(path).stat().st_mtime
        return age > self.max_age.total_seconds()

    def download(self, interval, fname):
        '''
        Download a file from the remote archive.

        Parameters
        ----------
        interval : tuple of `datetime.datetime`
            The start and end times of the file interval
        fname : str
            Name of the file to download

        Returns
        -------
        local_file : `pathlib.Path`
            File path
        '''
        local_file = self.local_path(interval, fname)
        return _download_url(self.remote_url(interval), fname, local_file.parent)

    def fetch(self, interval):
        '''
        Local path to the newest file for an interval. The file is downloaded
        if it does not exist locally or if the local copy is stale.

        Parameters
        ----------
        interval : tuple of `datetime.datetime`
            The start and end times of the file interval

        Returns
        -------
        path : `pathlib.Path`
            Local file. None if no file exists locally or remotely.
        '''
        local_file = newest_version(self.search_local(interval))
        if local_file is not None:
            if self.no_download or not self.is_stale(local_file):
                return local_file
        elif self.no_download:
            return None

        try:
            remote_file = newest_version(self.search_remote(interval))
        except requests.RequestException as E:
            warn('Remote search failed for {0}: {1}'
                 .format(self.fname(interval), E))
            return local_file

        if remote_file is None:
            return local_file

        # Keep local files that are newer than anything in the archive. A
        # stale file with the same version is refreshed in place.
        if ((local_file is not None)
                and (parse_version(local_file) > parse_version(remote_file))):
            return local_file

        return self.download(interval, remote_file)

    def files(self, start_time, end_time, best_effort=False):
        '''
        Resolve the files covering a time interval.

        Parameters
        ----------
        start_time, end_time : `datetime.datetime`
            Start and end times of the data interval
        best_effort : bool
            Return an empty list instead of raising `NoDataError` when no
            files are found

        Returns
        -------
        files : list of `FileDescriptor`
            Files in ascending time order
        '''
        result = []
        for interval in self.intervals(start_time, end_time):
            path = self.fetch(interval)
            if path is not None:
                result.append(FileDescriptor(Path(path), interval))

        if not result:
            msg = ('No {0} files found between {1} and {2}'
                   .format(self.dataset.name, start_time, end_time))
            if best_effort:
                warn(msg)
            else:
                raise NoDataError(msg)

        return result


def resolve_files(dataset, t0=None, t1=None, files=None, sub_type=None,
                  version=None, best_effort=False, **kwargs):
    '''
    Produce the ordered list of files covering a time interval.

    Parameters
    ----------
    dataset : str or `DatasetType`
        Dataset identifier
    t0, t1 : str, float, `datetime.datetime`, or `numpy.datetime64`
        Start and end of the data interval
    files : list of str or path-like
        Explicit file list. Overrides the time-based search.
    sub_type : str
        Probe, spacecraft, or station identifier
    version : str
        Data version. The highest version is used if not given.
    best_effort : bool
        Warn instead of raising `NoDataError` if nothing is found
    **kwargs
        Passed to `Downloader`

    Returns
    -------
    files : list of `FileDescriptor`
        Resolved files
    '''
    if files is not None:
        if isinstance(files, (str, Path)):
            files = [files]
        result = []
        for file in files:
            path = Path(file).expanduser()
            if not path.exists():
                raise FileNotFoundError('File not found: {0}'.format(path))
            result.append(FileDescriptor(path))
        if not result:
            raise ValueError('Explicit file list is empty.')
        return result

    if t0 is None:
        raise ValueError('A time interval or a file list must be given.')
    if t1 is None:
        t1 = t0

    downloader = Downloader(dataset, sub_type=sub_type, version=version,
                            **kwargs)
    return downloader.files(to_datetime(t0), to_datetime(t1),
                            best_effort=best_effort)


def _download_url(remote_base_url, fname, local_dir):
    '''
    Download a file

    Parameters
    ----------
    remote_base_url : str
        URL at which the file is located
    fname : str
        Name of the file to be downloaded
    local_dir : `pathlib.Path`
        Absolute path of directory in which to save the file

    Returns
    -------
    local_file : `pathlib.Path`
        Absolute path to downloaded file
    '''

    if not local_dir.exists():
        local_dir.mkdir(parents=True)

    remote_file = '/'.join((remote_base_url.rstrip('/'), fname))
    local_file = local_dir / fname
    part_file = local_file.with_name(fname + '.part')

    r = requests.get(remote_file, stream=True, allow_redirects=True,
                     timeout=config.timeout)
    r.raise_for_status()
    total_size = int(r.headers.get('content-length', 0))

    # Download
    #   - Write to a temporary file so that an interrupted download is never
    #     mistaken for a complete file
    with open(part_file, 'wb') as f:
        with tqdm(total=total_size, unit='B', unit_scale=True,
                  desc=fname, ascii=True) as pbar:

            for chunk in r.iter_content(chunk_size=1024):
                if chunk:
                    f.write(chunk)
                    pbar.update(len(chunk))

    part_file.replace(local_file)
    return local_file
