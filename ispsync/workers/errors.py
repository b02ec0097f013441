class JobRunnerError(Exception):
    pass


class UnknownJobTypeError(JobRunnerError):
    pass


class DuplicateJobTypeError(JobRunnerError):
    pass
