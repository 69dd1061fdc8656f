import os
import sys

from fastapi import __version__ as fastapi_version
from requests import __version__ as requests_version


def get_runtime_info():
    return {
        "app_version": os.environ.get("CHORUS_VERSION", "0.1.0"),
        "python_version": sys.version.split()[0],
        "fastapi_version": fastapi_version,
        "requests_version": requests_version,
    }
