"""elFinder connector settings."""

from server.settings.components import config

# Public base url of the bucket, file descriptors get `{url}/{path}`
ELFINDER_URL = config(
    'ELFINDER_URL',
    default='http://localhost:9000/elfinder',
)

# Store prefix the tree is rooted at, empty means the whole bucket
ELFINDER_ROOT = config('ELFINDER_ROOT', default='')

# Label of the root node in the client
ELFINDER_HOME = config('ELFINDER_HOME', default='Home')

ELFINDER_DEFAULT_PERMS = {
    'read': True,
    'write': True,
    'locked': True,  # Only applies to the root
    'hidden': False,
}

# (pattern, overrides) pairs; a str matches exactly, a compiled regex
# is searched in the path, e.g. (re.compile(r'^/private'), {'read': False})
ELFINDER_PERMS: list = []

ELFINDER_DISABLED_COMMANDS = ('archive', 'duplicate', 'extract', 'resize', 'tmb')

ELFINDER_ALLOW_DOT_FILES = config(
    'ELFINDER_ALLOW_DOT_FILES',
    cast=bool,
    default=True,
)

ELFINDER_UPLOAD_MAX_SIZE = config('ELFINDER_UPLOAD_MAX_SIZE', default='50M')

# Dotted path to a callable taking a name and returning bool
ELFINDER_NAME_VALIDATOR = None

ELFINDER_TREE_SUB_FOLDERS = config(
    'ELFINDER_TREE_SUB_FOLDERS',
    cast=bool,
    default=False,
)

ELFINDER_THUMBS = config('ELFINDER_THUMBS', cast=bool, default=False)
ELFINDER_THUMBS_DIRECTORY = '.thumbs'
ELFINDER_THUMBS_SIZE = 48
ELFINDER_THUMBS_AT_ONCE = 5

# Dotted path to an object providing size(), resize() and thumbnail()
ELFINDER_IMAGE_HANDLER = config('ELFINDER_IMAGE_HANDLER', default=None)

ELFINDER_RESPONSE_CACHE_EXPIRY = config(
    'ELFINDER_RESPONSE_CACHE_EXPIRY',
    cast=int,
    default=3000,
)
