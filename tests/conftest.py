from types import SimpleNamespace

import cdflib
import numpy as np
import pandas as pd
import pytest
import requests

from spacecdf import config
from spacecdf.data.datasets import BinAxis, DatasetType
from spacecdf.data.util import Downloader

ENERGY = np.array([100., 150., 300., 500.])
PITCH_ANGLE = np.array([10., 50., 90., 130., 170.])


class FakeCDF():
    '''Stand-in for `cdflib.CDF` serving variables registered in `files`.'''
    files = {}

    def __init__(self, path):
        try:
            self.variables = self.files[str(path)]
        except KeyError:
            raise FileNotFoundError(path) from None

    def cdf_info(self):
        return SimpleNamespace(zVariables=list(self.variables), rVariables=[])

    def varinq(self, name):
        var = self.variables[name]
        shape = var['data'].shape
        if var['rec_vary']:
            shape = shape[1:]
        return SimpleNamespace(Rec_Vary=var['rec_vary'],
                               Dim_Sizes=list(shape))

    def varget(self, name, startrec=None, endrec=None):
        var = self.variables[name]
        data = var['data']
        if var['rec_vary'] and (startrec is not None):
            data = data[startrec:endrec + 1]

        # Single records come back without a record dimension
        if var['rec_vary'] and (len(data) == 1):
            data = data[0]
        return data

    def varattsget(self, name):
        return dict(self.variables[name]['attrs'])


class FakeResponse():
    def __init__(self, status_code=200, text='', content=b''):
        self.status_code = status_code
        self.text = text
        self.content = content
        self.headers = {'content-length': str(len(content))}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError('{0} Error'.format(self.status_code))

    def iter_content(self, chunk_size=1):
        for idx in range(0, len(self.content), chunk_size):
            yield self.content[idx:idx + chunk_size]


@pytest.fixture
def dataset():
    return DatasetType(
        name='test_flux',
        fname='test{sub}_flux_%Y%m%d_v*.cdf',
        remote_dir='test/{sub}/%Y/',
        remote_root='https://example.invalid/data/',
        time_var='test{sub}_time',
        time_type='unix',
        cadence=np.timedelta64(60, 's'),
        variables={'FLUX': 'flux',
                   'ENERGY': 'energy',
                   'ALPHA': 'pitch_angle',
                   'L': 'L'},
        sub_types=('a', 'b'),
        fill_vars=('flux', 'L'),
        dims={'flux': ('time', 'alpha_index', 'energy_index'),
              'energy': ('energy_index',),
              'pitch_angle': ('alpha_index',)},
        flux_var='flux',
        bin_axes={'energy': BinAxis('energy', 'energy_index', 'MeV'),
                  'pitch_angle': BinAxis('pitch_angle', 'alpha_index', 'deg')},
    )


@pytest.fixture
def data_root(tmp_path, monkeypatch):
    monkeypatch.setattr(config, 'data_root', tmp_path)
    monkeypatch.setattr(config, 'mirror_root', None)
    monkeypatch.setattr(config, 'no_download', True)
    return tmp_path


@pytest.fixture
def fake_cdf(monkeypatch):
    monkeypatch.setattr(FakeCDF, 'files', {})
    monkeypatch.setattr(cdflib, 'CDF', FakeCDF)
    return FakeCDF


@pytest.fixture
def make_file(data_root, fake_cdf):
    '''
    Create an empty file in the local data root and register the contents
    the fake CDF reader returns for it. Records are `cadence` seconds apart
    starting at `start` on `day`.
    '''
    def make_file(day, nrec=10, sub='a', version='1.0.0', start='00:00:00',
                  cadence=60, flux=None):
        t0 = np.datetime64('{0}T{1}'.format(day, start), 's')
        time = t0 + np.arange(nrec) * np.timedelta64(cadence, 's')
        unix = (time - np.datetime64(0, 's')) / np.timedelta64(1, 's')
        if flux is None:
            flux = np.ones((nrec, len(PITCH_ANGLE), len(ENERGY)))

        path = (data_root / 'test' / sub / day[:4]
                / 'test{0}_flux_{1}_v{2}.cdf'.format(sub, day.replace('-', ''),
                                                     version))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch()

        fake_cdf.files[str(path)] = {
            'test{0}_time'.format(sub): {'data': unix, 'rec_vary': True,
                                        'attrs': {}},
            'FLUX': {'data': flux, 'rec_vary': True,
                     'attrs': {'FILLVAL': -1e31,
                               'UNITS': 'cm^-2 s^-1 sr^-1 MeV^-1'}},
            'ENERGY': {'data': ENERGY, 'rec_vary': False,
                       'attrs': {'UNITS': 'MeV'}},
            'ALPHA': {'data': PITCH_ANGLE, 'rec_vary': False,
                      'attrs': {'UNITS': 'deg'}},
            'L': {'data': np.linspace(3, 4, nrec), 'rec_vary': True,
                  'attrs': {'FILLVAL': -1e31}},
        }
        return path

    return make_file


# Length of each non-time dimension of the dataset descriptors
DIM_SIZES = {'alpha_index': len(PITCH_ANGLE), 'energy_index': len(ENERGY),
             'cart': 3, 'b_index': 4, 'row': 2, 'col': 3}


def encode_time(time, time_type):
    '''Encode `numpy.datetime64` times the way a CDF file stores them.'''
    unix = (time - np.datetime64(0, 'ns')) / np.timedelta64(1, 's')
    if time_type == 'cdf_epoch':
        return np.asarray(cdflib.cdfepoch.timestamp_to_cdfepoch(unix))
    elif time_type == 'cdf_tt2000':
        return np.asarray(cdflib.cdfepoch.timestamp_to_tt2000(unix))
    return unix


@pytest.fixture
def make_dataset_file(data_root, fake_cdf):
    '''
    Create a file for one of the dataset descriptors, in the location the
    downloader searches, holding every default variable. Variables are filled
    with ones unless given in `values` (keyed by output name).
    '''
    def make_dataset_file(dataset, sub=None, start='2019-01-01T00:00:00',
                          nrec=5, values=None):
        if values is None:
            values = {}

        downloader = Downloader(dataset, sub_type=sub)
        sub = downloader.sub_type
        t0 = np.datetime64(start, 'ns')
        interval = downloader.intervals(pd.Timestamp(t0).to_pydatetime(),
                                        pd.Timestamp(t0).to_pydatetime())[0]
        path = downloader.local_path(
            interval, downloader.fname(interval).replace('v*', 'v1.0.0'))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch()

        time = t0 + np.arange(nrec) * dataset.cadence.astype('timedelta64[ns]')
        variables = {dataset.time_varname(sub): {
            'data': encode_time(time, dataset.time_type),
            'rec_vary': True, 'attrs': {}}}

        for src, dest in dataset.default_variables(sub).items():
            dims = dataset.dims.get(dest, ('time',))
            rec_vary = dims[0] == 'time'
            shape = tuple(nrec if dim == 'time' else DIM_SIZES[dim]
                          for dim in dims)
            data = np.asarray(values.get(dest, np.ones(shape)))
            variables[src] = {'data': data, 'rec_vary': rec_vary,
                              'attrs': {'FILLVAL': -1e31, 'UNITS': 'nT'}}

        fake_cdf.files[str(path)] = variables
        return path

    return make_dataset_file
