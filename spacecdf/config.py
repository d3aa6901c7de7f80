import os
import datetime as dt
from pathlib import Path

# Local data locations
#   - Files are cached beneath `data_root` using the dataset's local
#     directory pattern
#   - `mirror_root` is an optional read-only copy of the same tree
data_root = Path(os.environ.get('SPACECDF_DATA_ROOT', '~/data/')).expanduser()
mirror_root = os.environ.get('SPACECDF_MIRROR_ROOT')
if mirror_root is not None:
    mirror_root = Path(mirror_root).expanduser()

# Remote data locations
spdf_url = 'https://spdf.gsfc.nasa.gov/pub/data/'

# Local files older than this are checked against the remote archive
max_age = dt.timedelta(days=365)

# Never contact the remote archive
no_download = os.environ.get('SPACECDF_NO_DOWNLOAD', '0') not in ('0', '')

# HTTP timeout (seconds)
timeout = 60
