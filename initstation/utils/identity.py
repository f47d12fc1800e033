"""
User identity translation.

The Counter Ledger is keyed by an encoded identity derived from the user's
numeric account key, while Session-ID artifacts carry the login name. The
mapping between the two belongs to the ILS, so it is reached through
external commands rather than reimplemented here.
"""

import logging
import subprocess

logger = logging.getLogger(__name__)


class IdentityCodec:
    """Interface for decode(login name) -> user key and encode(user key) -> ledger key."""

    def decode(self, login_name):
        raise NotImplementedError

    def encode(self, user_key):
        raise NotImplementedError

    def ledger_key(self, login_name):
        """Return the Counter Ledger key for a login name, or None if it can't be derived."""
        user_key = self.decode(login_name)
        if user_key is None:
            logger.warning(f"could not find the user key for '{login_name}'")
            return None
        encoded = self.encode(user_key)
        if encoded is None:
            logger.warning(f"could not encode user key {user_key} for '{login_name}'")
        return encoded


class NullIdentityCodec(IdentityCodec):
    """Codec used when no translation commands are configured."""

    def decode(self, login_name):
        logger.debug(f"no decode command configured, can't translate '{login_name}'")
        return None

    def encode(self, user_key):
        return None


class CommandIdentityCodec(IdentityCodec):
    """
    Translate identities by running ILS commands.

    Each command is an argument list; an argument containing ``{value}`` has
    the input substituted, otherwise the input is appended as the last
    argument. The first line of stdout is the result.
    """

    def __init__(self, decode_command, encode_command, timeout=30):
        self.decode_command = list(decode_command)
        self.encode_command = list(encode_command)
        self.timeout = timeout

    def decode(self, login_name):
        return self._run(self.decode_command, login_name)

    def encode(self, user_key):
        return self._run(self.encode_command, user_key)

    def _build_args(self, command, value):
        value = str(value)
        if any("{value}" in arg for arg in command):
            return [arg.replace("{value}", value) for arg in command]
        return command + [value]

    def _run(self, command, value):
        args = self._build_args(command, value)
        try:
            result = subprocess.run(args, capture_output=True, text=True, check=True, timeout=self.timeout)
        except FileNotFoundError:
            logger.error(f"identity command not found: {args[0]}")
            return None
        except subprocess.CalledProcessError as e:
            logger.warning(f"'{' '.join(args)}' failed with status {e.returncode}: {e.stderr.strip()}")
            return None
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error(f"'{' '.join(args)}' could not be run: {e}")
            return None
        lines = result.stdout.strip().splitlines()
        if not lines or not lines[0].strip():
            return None
        return lines[0].strip()


def codec_from_settings(settings):
    """Build the codec described by the settings."""
    if settings.decode_command and settings.encode_command:
        return CommandIdentityCodec(settings.decode_command, settings.encode_command)
    return NullIdentityCodec()
