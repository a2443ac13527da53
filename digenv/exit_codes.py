"""Exit status values reserved by digenv."""

EXIT_SUCCESS = 0

# A pipe/fork/dup2/close/wait call failed while setting up the pipeline
EXIT_SYSCALL_FAILURE = 1

# No candidate program of a stage could be executed
EXIT_LAUNCH_FAILURE = 1

# A stage was terminated by a signal
EXIT_SIGNALED = 2
