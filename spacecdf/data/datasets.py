'''
Dataset-type descriptors.

Each entry in `DATASETS` holds everything the retrieval pipeline needs to
know about one mission/instrument data product: where its files live, how
they are named, which variables to read and how to rename them, how time
is represented, and how often it is sampled.

File name and directory patterns are formatted in two passes:
    1. `str.format` with ``sub`` set to the sub-type (probe, spacecraft,
       ground station, ...)
    2. `datetime.strftime` with the start of the file interval
A ``v*`` in the file name is the version wildcard.
'''
import datetime as dt
from dataclasses import dataclass, field

import numpy as np


@dataclass(frozen=True)
class BinAxis:
    var: str            # destination name of the bin-value variable
    dim: str            # dimension of the flux array indexed by the bins
    units: str


@dataclass(frozen=True)
class DatasetType:
    name: str
    fname: str
    remote_dir: str
    time_var: str
    time_type: str                    # 'cdf_epoch', 'cdf_tt2000', 'unix'
    cadence: np.timedelta64           # nominal sample interval
    variables: dict                   # source name -> destination name
    file_cadence: str = 'daily'       # 'hourly', 'daily', 'monthly', 'yearly'
    local_dir: str = None             # defaults to `remote_dir`
    remote_root: str = None           # defaults to config.spdf_url
    sub_types: tuple = ()
    fill_vars: tuple = ()
    fill_value: float = -1e31
    dims: dict = field(default_factory=dict)
    flux_var: str = None
    bin_axes: dict = field(default_factory=dict)
    max_age: object = None            # datetime.timedelta; None -> config.max_age

    def __post_init__(self):
        if self.time_type not in ('cdf_epoch', 'cdf_tt2000', 'unix'):
            raise ValueError('Invalid time type "{0}" for dataset {1}'
                             .format(self.time_type, self.name))
        if self.file_cadence not in ('hourly', 'daily', 'monthly', 'yearly'):
            raise ValueError('Invalid file cadence "{0}" for dataset {1}'
                             .format(self.file_cadence, self.name))

    def check_sub_type(self, sub_type=None):
        '''
        Validate a sub-type identifier. Datasets without sub-types accept
        only None; otherwise None selects the first sub-type.
        '''
        if not self.sub_types:
            if sub_type is not None:
                raise ValueError('Dataset {0} does not have sub-types.'
                                 .format(self.name))
            return None

        if sub_type is None:
            return self.sub_types[0]
        if sub_type not in self.sub_types:
            raise ValueError('Sub-type "{0}" not in {1}'
                             .format(sub_type, self.sub_types))
        return sub_type

    def format(self, pattern, sub_type=None):
        return pattern.format(sub=sub_type)

    def time_varname(self, sub_type=None):
        return self.format(self.time_var, sub_type)

    def default_variables(self, sub_type=None):
        return {self.format(src, sub_type): dest
                for src, dest in self.variables.items()}


RBSP_PROBES = ('a', 'b')
THEMIS_PROBES = ('a', 'b', 'c', 'd', 'e')
MMS_SPACECRAFT = ('1', '2', '3', '4')
THEMIS_ASI_SITES = ('atha', 'chbg', 'ekat', 'fsim', 'fsmi', 'fykn', 'gako',
                    'gbay', 'gill', 'inuv', 'kapu', 'kian', 'kuuj', 'mcgr',
                    'nrsq', 'pgeo', 'pina', 'rank', 'snkq', 'tpas', 'whit',
                    'yknf')

# Pitch-angle resolved flux: (time, pitch angle, energy)
_FLUX_DIMS = {'FEDU': ('time', 'alpha_index', 'energy_index'),
              'pitch_angle': ('alpha_index',)}

DATASETS = {
    'rbsp_rept_l3': DatasetType(
        name='rbsp_rept_l3',
        fname='rbsp{sub}_rel03_ect-rept-sci-l3_%Y%m%d_v*.cdf',
        remote_dir='rbsp/rbsp{sub}/l3/ect/rept/sectors/rel03/%Y/',
        time_var='Epoch',
        time_type='cdf_epoch',
        cadence=np.timedelta64(12, 's'),
        variables={'FEDU': 'FEDU',
                   'FEDU_Energy': 'energy',
                   'FEDU_Alpha': 'pitch_angle',
                   'L_star': 'L_star',
                   'L': 'L',
                   'MLT': 'MLT'},
        sub_types=RBSP_PROBES,
        fill_vars=('FEDU', 'L_star', 'L', 'MLT'),
        dims={**_FLUX_DIMS, 'energy': ('energy_index',)},
        flux_var='FEDU',
        bin_axes={'energy': BinAxis('energy', 'energy_index', 'MeV'),
                  'pitch_angle': BinAxis('pitch_angle', 'alpha_index', 'deg')},
    ),
    'rbsp_mageis_l3': DatasetType(
        name='rbsp_mageis_l3',
        fname='rbsp{sub}_rel04_ect-mageis-L3_%Y%m%d_v*.cdf',
        remote_dir='rbsp/rbsp{sub}/l3/ect/mageis/sectors/rel04/%Y/',
        time_var='Epoch',
        time_type='cdf_epoch',
        cadence=np.timedelta64(11, 's'),
        variables={'FEDU': 'FEDU',
                   'FEDU_Energy': 'energy',
                   'FEDU_Alpha': 'pitch_angle',
                   'L_star': 'L_star',
                   'L': 'L',
                   'MLT': 'MLT'},
        sub_types=RBSP_PROBES,
        fill_vars=('FEDU', 'energy', 'L_star', 'L', 'MLT'),
        # Energy channels drift slightly from record to record
        dims={**_FLUX_DIMS, 'energy': ('time', 'energy_index')},
        flux_var='FEDU',
        bin_axes={'energy': BinAxis('energy', 'energy_index', 'keV'),
                  'pitch_angle': BinAxis('pitch_angle', 'alpha_index', 'deg')},
    ),
    'rbsp_emfisis_l3_4sec_gse': DatasetType(
        name='rbsp_emfisis_l3_4sec_gse',
        fname='rbsp-{sub}_magnetometer_4sec-gse_emfisis-l3_%Y%m%d_v*.cdf',
        remote_dir='rbsp/rbsp{sub}/l3/emfisis/magnetometer/4sec/gse/%Y/',
        time_var='Epoch',
        time_type='cdf_tt2000',
        cadence=np.timedelta64(4, 's'),
        variables={'Mag': 'B_GSE',
                   'Magnitude': 'B_mag',
                   'coordinates': 'R_GSE'},
        sub_types=RBSP_PROBES,
        fill_vars=('B_GSE', 'B_mag', 'R_GSE'),
        dims={'B_GSE': ('time', 'cart'), 'R_GSE': ('time', 'cart')},
    ),
    'themis_fgm_l2': DatasetType(
        name='themis_fgm_l2',
        fname='th{sub}_l2_fgm_%Y%m%d_v*.cdf',
        remote_dir='themis/th{sub}/l2/fgm/%Y/',
        time_var='th{sub}_fgs_time',
        time_type='unix',
        cadence=np.timedelta64(3, 's'),
        variables={'th{sub}_fgs_gse': 'B_GSE',
                   'th{sub}_fgs_btotal': 'B_mag'},
        sub_types=THEMIS_PROBES,
        fill_vars=('B_GSE', 'B_mag'),
        dims={'B_GSE': ('time', 'cart')},
    ),
    'themis_asi_asf': DatasetType(
        name='themis_asi_asf',
        fname='thg_l1_asf_{sub}_%Y%m%d%H_v*.cdf',
        remote_dir='themis/thg/l1/asi/{sub}/%Y/%m/',
        time_var='thg_asf_{sub}_time',
        time_type='unix',
        cadence=np.timedelta64(3, 's'),
        variables={'thg_asf_{sub}': 'image'},
        file_cadence='hourly',
        sub_types=THEMIS_ASI_SITES,
        dims={'image': ('time', 'row', 'col')},
    ),
    'mms_fgm_srvy_l2': DatasetType(
        name='mms_fgm_srvy_l2',
        fname='mms{sub}_fgm_srvy_l2_%Y%m%d_v*.cdf',
        remote_dir='mms/mms{sub}/fgm/srvy/l2/%Y/%m/',
        time_var='Epoch',
        time_type='cdf_tt2000',
        cadence=np.timedelta64(125, 'ms'),
        variables={'mms{sub}_fgm_b_gse_srvy_l2': 'B_GSE',
                   'mms{sub}_fgm_flag_srvy_l2': 'flag'},
        sub_types=MMS_SPACECRAFT,
        fill_vars=('B_GSE',),
        dims={'B_GSE': ('time', 'b_index')},
    ),
    'omni_hro_1min': DatasetType(
        name='omni_hro_1min',
        fname='omni_hro_1min_%Y%m01_v*.cdf',
        remote_dir='omni/omni_cdaweb/hro_1min/%Y/',
        time_var='Epoch',
        time_type='cdf_epoch',
        cadence=np.timedelta64(1, 'm'),
        variables={'BX_GSE': 'Bx',
                   'BY_GSM': 'By',
                   'BZ_GSM': 'Bz',
                   'flow_speed': 'V',
                   'proton_density': 'N',
                   'SYM_H': 'SYM_H',
                   'AE_INDEX': 'AE'},
        file_cadence='monthly',
        fill_vars=('Bx', 'By', 'Bz', 'V', 'N', 'SYM_H', 'AE'),
        # Monthly files are reprocessed as new data arrive
        max_age=dt.timedelta(days=30),
    ),
}


def get_dataset(dataset):
    '''
    Look up a dataset-type descriptor.

    Parameters
    ----------
    dataset : str or `DatasetType`
        Dataset identifier. Descriptors are passed through unchanged.

    Returns
    -------
    dataset : `DatasetType`
        The descriptor
    '''
    if isinstance(dataset, DatasetType):
        return dataset
    try:
        return DATASETS[dataset]
    except KeyError:
        raise ValueError('"{0}" is not a valid dataset. Choose from {1}'
                         .format(dataset, tuple(DATASETS))) from None
