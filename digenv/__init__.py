"""
digenv - study your environment variables through a process pipeline.

    digenv              ==  printenv | sort | $PAGER
    digenv ARGS...      ==  printenv | grep ARGS... | sort | $PAGER
"""

__version__ = "0.1.0"
