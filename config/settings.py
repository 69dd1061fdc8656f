"""Application settings constants."""

from __future__ import annotations

# Every source a provider can be registered for.
KNOWN_SOURCES = (
    "netease",
    "qq",
    "kugou",
    "kuwo",
    "migu",
    "soda",
    "bilibili",
    "fivesing",
    "jamendo",
    "joox",
    "qianqian",
)

# Default fan-out lists when the caller does not name any sources.
DEFAULT_SONG_SEARCH_SOURCES = ("netease", "qq", "kugou", "kuwo", "bilibili", "migu", "soda", "fivesing")
DEFAULT_PLAYLIST_SEARCH_SOURCES = ("netease", "qq", "kugou", "kuwo", "bilibili", "soda", "fivesing")
DEFAULT_RECOMMEND_SOURCES = ("netease", "qq", "kugou", "kuwo")

# Fallback matching.
SWITCH_SOURCES = ("netease", "qq", "kugou", "kuwo", "migu", "bilibili")
# Never offered as fallback candidates, whatever their capabilities.
SWITCH_EXCLUDED_SOURCES = frozenset({"soda", "fivesing"})
SWITCH_MAX_HITS_PER_SOURCE = 8
NAME_WEIGHT = 0.7
ARTIST_WEIGHT = 0.3
DURATION_TOLERANCE_SECONDS = 10
DURATION_TOLERANCE_RATIO = 0.15

# The one source whose media must be decrypted before it can be served.
ENCRYPTED_SOURCE = "soda"

# Network.
PROBE_TIMEOUT_SECONDS = 5.0
UPSTREAM_TIMEOUT_SECONDS = 30.0
FANOUT_TIMEOUT_SECONDS = 20.0
MAX_PARALLEL_SOURCES = 8
STREAM_CHUNK_SIZE = 64 * 1024

UA_COMMON = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/134.0.0.0 Safari/537.36"
)
UA_MOBILE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 9_1 like Mac OS X) AppleWebKit/601.1.46 "
    "(KHTML, like Gecko) Version/9.0 Mobile/13B143 Safari/601.1"
)
REFERER_BILIBILI = "https://www.bilibili.com/"
REFERER_MIGU = "http://music.migu.cn/"
REFERER_QQ = "http://y.qq.com"

NO_LYRIC_PLACEHOLDER = "[00:00.00] 暂无歌词"
