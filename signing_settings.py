import os
import pathlib
import tempfile

from dataclasses import dataclass
from typing import Optional


DEFAULT_PROFILES_DIR = pathlib.Path('~', 'Library', 'MobileDevice', 'Provisioning Profiles')


@dataclass(frozen=True)
class Settings:
    security: str = 'security'
    openssl: str = 'openssl'
    plistbuddy: str = '/usr/libexec/PlistBuddy'
    profiles_dir: pathlib.Path = DEFAULT_PROFILES_DIR
    temp_dir: Optional[pathlib.Path] = None
    scratch_dir: Optional[pathlib.Path] = None
    process_timeout: Optional[float] = None

    def resolved_profiles_dir(self):
        return self.profiles_dir.expanduser()

    def resolved_temp_dir(self):
        if self.temp_dir is not None:
            return self.temp_dir.expanduser()
        return pathlib.Path(tempfile.gettempdir())

    def resolved_scratch_dir(self):
        if self.scratch_dir is not None:
            return self.scratch_dir.expanduser()
        return pathlib.Path.cwd()


def load(environ=None):
    """Read settings from SIGNPREP_* environment variables, falling back to defaults."""
    if environ is None:
        environ = os.environ

    defaults = Settings()
    timeout = environ.get('SIGNPREP_PROCESS_TIMEOUT')
    if timeout:
        try:
            timeout = float(timeout)
        except ValueError:
            raise ValueError('SIGNPREP_PROCESS_TIMEOUT must be a number of seconds, got {!r}'.format(timeout)) from None
        if timeout <= 0:
            timeout = None
    else:
        timeout = None

    return Settings(
        security=environ.get('SIGNPREP_SECURITY') or defaults.security,
        openssl=environ.get('SIGNPREP_OPENSSL') or defaults.openssl,
        plistbuddy=environ.get('SIGNPREP_PLISTBUDDY') or defaults.plistbuddy,
        profiles_dir=_optional_path(environ.get('SIGNPREP_PROFILES_DIR')) or defaults.profiles_dir,
        temp_dir=_optional_path(environ.get('SIGNPREP_TEMP_DIR')),
        scratch_dir=_optional_path(environ.get('SIGNPREP_SCRATCH_DIR')),
        process_timeout=timeout,
    )


def _optional_path(value):
    if not value:
        return None
    return pathlib.Path(value)
