import numpy as np
import pytest

from spacecdf.data import download_data as dd
from spacecdf.data.context import DataContext
from spacecdf.data.datasets import DATASETS
from spacecdf.data.util import NoDataError

from conftest import ENERGY, PITCH_ANGLE


def test_request_variables_defaults(dataset):
    variables, dims, fill_vars = dd.request_variables(dataset, 'a')

    assert variables == dataset.variables
    assert dims == dataset.dims
    assert fill_vars == ['flux', 'L']


def test_request_variables_renamed(dataset):
    variables, dims, fill_vars = dd.request_variables(
        dataset, 'a', varnames=['FLUX', 'test{sub}_time'],
        newnames=['j', 'epoch'])

    assert variables == {'FLUX': 'j', 'testa_time': 'epoch'}
    assert dims == {'j': dataset.dims['flux']}
    assert fill_vars == ['j']


def test_request_variables_mismatch(dataset):
    with pytest.raises(ValueError, match='does not match'):
        dd.request_variables(dataset, 'a', varnames=['FLUX', 'L'],
                             newnames=['j'])


def test_load_default_variables(dataset, make_file):
    make_file('2019-01-01')
    data = dd.load_data(dataset, 'a', t0='2019-01-01T00:00:00',
                        t1='2019-01-01T23:59:59')

    assert set(data.data_vars) == set(dataset.variables.values())
    assert data.sizes['time'] == 10
    assert data.attrs['dataset'] == 'test_flux'
    assert data.attrs['sub_type'] == 'a'
    assert data.attrs['files'] == ['testa_flux_20190101_v1.0.0.cdf']
    assert 'records' not in data.attrs


def test_load_two_files(dataset, make_file):
    make_file('2019-01-01', nrec=10)
    make_file('2019-01-02', nrec=7)
    data = dd.load_data(dataset, t0='2019-01-01T00:05:00',
                        t1='2019-01-02T00:03:00')

    assert data.sizes['time'] == 5 + 4
    assert data['flux'].shape == (9, len(PITCH_ANGLE), len(ENERGY))
    assert data['energy'].shape == (len(ENERGY),)
    assert np.all(np.diff(data['time'].values) > np.timedelta64(0, 's'))
    assert data['time'].values[0] == np.datetime64('2019-01-01T00:05:00')
    assert data['time'].values[-1] == np.datetime64('2019-01-02T00:03:00')


def test_load_skips_file_outside_interval(dataset, make_file):
    make_file('2019-01-01', nrec=10)
    make_file('2019-01-02', nrec=10, start='12:00:00')

    with pytest.warns(UserWarning, match='Skipping testa_flux_20190102'):
        data = dd.load_data(dataset, t0='2019-01-01T00:05:00',
                            t1='2019-01-02T06:00:00')

    assert data.sizes['time'] == 5
    assert data.attrs['files'] == ['testa_flux_20190101_v1.0.0.cdf']


def test_load_explicit_files(dataset, make_file):
    paths = [make_file('2019-01-02', nrec=3), make_file('2019-01-01', nrec=4)]
    data = dd.load_data(dataset, files=paths)

    assert data.sizes['time'] == 7
    assert data['time'].values[0] == np.datetime64('2019-01-01T00:00:00')


def test_load_replaces_fill(dataset, make_file):
    flux = np.ones((10, len(PITCH_ANGLE), len(ENERGY)))
    flux[3, 0, 0] = -1e31
    make_file('2019-01-01', flux=flux)

    data = dd.load_data(dataset, t0='2019-01-01', t1='2019-01-01T01:00:00')
    assert np.isnan(data['flux'].values[3, 0, 0])
    assert np.isnan(data['flux'].values).sum() == 1


def test_load_nearest(dataset, make_file):
    make_file('2019-01-01')
    data = dd.load_data(dataset, t='2019-01-01T00:03:20')

    assert data.sizes['time'] == 1
    assert data['time'].values[0] == np.datetime64('2019-01-01T00:03:00')
    assert data['flux'].shape == (1, len(PITCH_ANGLE), len(ENERGY))


def test_load_nearest_across_files(dataset, make_file):
    make_file('2019-01-01', nrec=1, start='23:59:40')
    make_file('2019-01-02', nrec=1, start='00:00:30')

    data = dd.load_data(dataset, t='2019-01-02T00:00:10')
    assert data['time'].values[0] == np.datetime64('2019-01-02T00:00:30')


def test_load_exact(dataset, make_file):
    make_file('2019-01-01')
    data = dd.load_data(dataset, t='2019-01-01T00:04:00', exact=True)
    assert data['time'].values[0] == np.datetime64('2019-01-01T00:04:00')

    with pytest.warns(UserWarning), pytest.raises(NoDataError):
        dd.load_data(dataset, t='2019-01-01T00:04:20', exact=True)


def test_load_uniform(dataset, make_file):
    make_file('2019-01-01', nrec=10, cadence=60)
    data = dd.load_data(dataset, t0='2019-01-01T00:00:00',
                        t1='2019-01-01T00:09:00', dt_out=np.timedelta64(3, 'm'))

    assert data.sizes['time'] == 4
    assert 'unix_time' in data.coords
    assert data['dt_plus'].values == np.timedelta64(3, 'm')


def test_load_stores_in_context(dataset, make_file):
    make_file('2019-01-01')
    ctx = DataContext()
    dd.load_data(dataset, t0='2019-01-01', t1='2019-01-01T01:00:00',
                 ctx=ctx, prefix='rbspa_')

    assert sorted(ctx.names()) == ['rbspa_L', 'rbspa_energy', 'rbspa_flux',
                                   'rbspa_pitch_angle']


def test_load_argument_errors(dataset):
    with pytest.raises(ValueError):
        dd.load_data(dataset)
    with pytest.raises(ValueError):
        dd.load_data(dataset, t0='2019-01-01')
    with pytest.raises(ValueError):
        dd.load_data(dataset, t='2019-01-01', t0='2019-01-01')
    with pytest.raises(ValueError):
        dd.load_data(dataset, t0='2019-01-02', t1='2019-01-01')
    with pytest.raises(ValueError):
        dd.load_data('voyager_lecp', t0='2019-01-01', t1='2019-01-02')
    with pytest.raises(ValueError):
        dd.load_data(dataset, 'c', t0='2019-01-01', t1='2019-01-02')


def test_get_data_flags_missing_data(dataset, data_root):
    data, err = dd.get_data(dataset, t0='2019-01-01', t1='2019-01-02')
    assert data is None
    assert 'No test_flux files' in err


def test_get_data_success(dataset, make_file):
    make_file('2019-01-01')
    data, err = dd.get_data(dataset, t0='2019-01-01', t1='2019-01-01T01:00:00')
    assert err == 0
    assert data.sizes['time'] == 10


def test_get_flux(dataset, make_file):
    make_file('2019-01-01')
    ctx = DataContext()
    flux, err = dd.get_flux(dataset, 'a', t0='2019-01-01',
                            t1='2019-01-01T01:00:00', energy=[100, 300],
                            pitch_angle=90, ctx=ctx)

    assert err == 0
    assert flux.name == 'test_flux_a_flux'
    assert flux.dims == ('time', 'energy_index')
    assert flux.attrs['display_type'] == 'spectrogram'
    assert flux.attrs['short_name'] == 'flux PA=90deg'
    np.testing.assert_array_equal(flux['energy_index'], [100, 150, 300])

    # Only the result is left in the context
    assert ctx.names() == ['test_flux_a_flux']


def test_get_flux_no_data(dataset, data_root):
    ctx = DataContext()
    flux, err = dd.get_flux(dataset, 'a', t0='2019-01-01', t1='2019-01-02',
                            ctx=ctx, name='j')
    assert flux is None
    assert err
    assert len(ctx) == 0


def test_get_flux_empty_bin_range(dataset, make_file):
    make_file('2019-01-01')
    ctx = DataContext()
    flux, err = dd.get_flux(dataset, 'a', t0='2019-01-01',
                            t1='2019-01-01T01:00:00', energy=[160, 200],
                            ctx=ctx)
    assert flux is None
    assert 'No bins in range' in err
    assert len(ctx) == 0


def test_filter_dataset_without_flux():
    with pytest.raises(ValueError):
        dd.filter_dataset_flux({}, 'omni_hro_1min', energy=1)


def test_list_files(dataset, make_file, capsys):
    path = make_file('2019-01-01')
    files = dd.list_files(dataset, '2019-01-01', '2019-01-01')
    assert [fd.path for fd in files] == [path]
    assert str(path) in capsys.readouterr().out


def test_list_files_none(dataset, data_root, capsys):
    with pytest.warns(UserWarning):
        assert dd.list_files(dataset, '2019-01-01', '2019-01-02') == []
    assert 'No test_flux data' in capsys.readouterr().out


T0 = np.datetime64('2019-01-01T00:00:00', 'ns')


@pytest.mark.parametrize('name', sorted(DATASETS))
def test_load_each_dataset_defaults(name, make_dataset_file):
    dataset = DATASETS[name]
    make_dataset_file(dataset, nrec=5)

    # Half a sample of margin on either side of the records
    cadence = dataset.cadence.astype('timedelta64[ns]')
    data = dd.load_data(name, t0=T0 - cadence / 2,
                        t1=T0 + 4 * cadence + cadence / 2)

    assert set(data.data_vars) == set(dataset.variables.values())
    assert data.sizes['time'] == 5
    assert abs(data['time'].values[0] - T0) < np.timedelta64(1, 'ms')
    for var, dims in dataset.dims.items():
        assert data[var].dims == dims


def test_get_rept_data(make_dataset_file):
    make_dataset_file(DATASETS['rbsp_rept_l3'], sub='b',
                      values={'energy': ENERGY, 'pitch_angle': PITCH_ANGLE})

    flux, err = dd.get_rept_data('b', t0='2019-01-01T00:00:00',
                                 t1='2019-01-01T00:01:00', energy=150,
                                 pitch_angle=[10, 90])

    assert err == 0
    assert flux.name == 'rbsp_rept_l3_b_FEDU'
    assert flux.dims == ('time', 'alpha_index')
    assert flux.attrs['display_type'] == 'spectrogram'
    np.testing.assert_array_equal(flux['alpha_index'], [10, 50, 90])


def test_get_mms_fgm_data(make_dataset_file):
    b = np.tile([1., 2., 2., 3.], (5, 1))
    b[2, :] = -1e31
    flag = np.array([0, 0, 0, 1, 2])
    make_dataset_file(DATASETS['mms_fgm_srvy_l2'], sub='1',
                      values={'B_GSE': b, 'flag': flag})

    data, err = dd.get_mms_fgm_data('1', T0 - np.timedelta64(100, 'ms'),
                                    T0 + np.timedelta64(1, 's'))

    assert err == 0
    assert data['B_GSE'].dims == ('time', 'cart')
    assert list(data['cart'].values) == ['x', 'y', 'z']
    np.testing.assert_array_equal(data['B_GSE'][0], [1., 2., 2.])
    np.testing.assert_array_equal(data['B_mag'], [3., 3., np.nan, np.nan, 3.])

    # Fill values and records with bit 0 of the flag set
    assert np.isnan(data['B_GSE'][2:4]).all()
    assert not np.isnan(data['B_GSE'][4]).any()


@pytest.mark.parametrize('name, get, sub',
                         [('rbsp_emfisis_l3_4sec_gse', dd.get_emfisis_data, 'a'),
                          ('themis_fgm_l2', dd.get_fgm_data, 'd')])
def test_magnetometer_components(name, get, sub, make_dataset_file):
    make_dataset_file(DATASETS[name], sub=sub)

    data, err = get(sub, T0 - np.timedelta64(1, 's'),
                    T0 + np.timedelta64(20, 's'))

    assert err == 0
    assert data['B_GSE'].dims == ('time', 'cart')
    assert list(data['cart'].values) == ['x', 'y', 'z']


def test_get_asi_data_nearest(make_dataset_file):
    image = np.arange(5 * 2 * 3, dtype='float64').reshape(5, 2, 3)
    make_dataset_file(DATASETS['themis_asi_asf'], sub='gill',
                      values={'image': image})

    data, err = dd.get_asi_data('gill', t='2019-01-01T00:00:07')

    assert err == 0
    assert data['image'].dims == ('time', 'row', 'col')
    assert data['time'].values[0] == np.datetime64('2019-01-01T00:00:06')
    np.testing.assert_array_equal(data['image'][0], image[2])


def test_get_asi_data_no_nearby_image(make_dataset_file):
    make_dataset_file(DATASETS['themis_asi_asf'], sub='gill')

    with pytest.warns(UserWarning, match='Skipping'):
        data, err = dd.get_asi_data('gill', t='2019-01-01T00:00:30')

    assert data is None
    assert err


def test_get_omni_data(make_dataset_file):
    sym_h = np.array([-10., -12., -1e31, -15., -20.])
    make_dataset_file(DATASETS['omni_hro_1min'], values={'SYM_H': sym_h})

    data, err = dd.get_omni_data('2018-12-31T23:59:30', '2019-01-01T00:04:30')

    assert err == 0
    assert data.attrs['files'] == ['omni_hro_1min_20190101_v1.0.0.cdf']
    np.testing.assert_array_equal(data['SYM_H'], [-10., -12., np.nan, -15., -20.])
