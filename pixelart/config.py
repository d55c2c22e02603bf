"""Global pixel-art configuration. Override via environment variables."""

import os


def _int(name, default):
    return int(os.environ.get(name, default))


def _float(name, default):
    return float(os.environ.get(name, default))


# ===== grid =====
ROWS, COLS = 7, 53
MAX_LEVEL = 4

# ===== synthesis =====
# commits per checkpoint (ref update / push)
BATCH_SIZE  = _int('PIXELART_BATCH_SIZE', 10)
# cool-down between checkpoints (sec)
BATCH_DELAY = _float('PIXELART_BATCH_DELAY', 0)

REPO_NAME = os.environ.get('PIXELART_REPO', 'art')
BRANCH    = os.environ.get('PIXELART_BRANCH', 'main')

# ===== GitHub =====
API_URL    = os.environ.get('PIXELART_API_URL', 'https://api.github.com').rstrip('/')
WEB_URL    = os.environ.get('PIXELART_WEB_URL', 'https://github.com').rstrip('/')
USER_AGENT = 'pixel-art-bot'
TIMEOUT    = _float('PIXELART_TIMEOUT', 15)
RETRIES    = _int('PIXELART_RETRIES', 3)
BACKOFF    = _float('PIXELART_BACKOFF', 1.0)
# longest wait for an exhausted quota to reset before giving up (sec)
RATE_LIMIT_WAIT = _float('PIXELART_RATE_LIMIT_WAIT', 60)
# git push is killed after this many seconds
PUSH_TIMEOUT    = _float('PIXELART_PUSH_TIMEOUT', 120)

# repo provisioning: auto_init runs asynchronously on GitHub's side
INIT_WAIT  = _float('PIXELART_INIT_WAIT', 2)
INIT_POLLS = _int('PIXELART_INIT_POLLS', 5)

# ===== OAuth =====
CLIENT_ID     = os.environ.get('GITHUB_CLIENT_ID', '')
CLIENT_SECRET = os.environ.get('GITHUB_CLIENT_SECRET', '')
OAUTH_SCOPE   = 'repo user'

# ===== pre-fill =====
CONTRIB_URL = os.environ.get('PIXELART_CONTRIB_URL',
                             'https://github-contributions-api.jogruber.de/v4').rstrip('/')
