class SigningError(Exception):
    pass


class ProcessExecutionError(SigningError):
    def __init__(self, executable, exit_status=None, output='', stderr='', message=None):
        self.executable = executable
        self.exit_status = exit_status
        self.output = output
        self.stderr = stderr
        if message is None:
            if exit_status is None:
                message = '{} could not be started'.format(executable)
            else:
                message = '{} failed with exit code {}'.format(executable, exit_status)
        if stderr:
            message = '{}\n{}'.format(message, stderr)
        SigningError.__init__(self, message)

    @property
    def started(self):
        return self.exit_status is not None


class ProcessTimeoutError(ProcessExecutionError):
    def __init__(self, executable, timeout, output=''):
        self.timeout = timeout
        message = '{} did not finish within {} seconds'.format(executable, timeout)
        ProcessExecutionError.__init__(self, executable, exit_status=-1, output=output, message=message)


class KeychainSetupVerificationError(SigningError):
    def __init__(self, keychain_path):
        self.keychain_path = keychain_path
        SigningError.__init__(self, 'Keychain {} is not in the user keychain search list after setup'.format(keychain_path))


class SigningIdentityNotFoundError(SigningError):
    def __init__(self, keychain_path):
        self.keychain_path = keychain_path
        SigningError.__init__(self, 'No codesigning identity found in keychain {}'.format(keychain_path))


class ProfileUnreadableError(SigningError):
    def __init__(self, profile_path, reason=None):
        self.profile_path = profile_path
        message = 'Provisioning profile {} could not be decoded'.format(profile_path)
        if reason:
            message = '{}: {}'.format(message, reason)
        SigningError.__init__(self, message)


class ProfileFieldMissingError(SigningError):
    def __init__(self, field, profile_path):
        self.field = field
        self.profile_path = profile_path
        SigningError.__init__(self, 'Provisioning profile {} has no {}'.format(profile_path, field))
