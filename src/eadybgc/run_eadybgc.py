"""
Main EADYBGC execution script. Invoked via the command line with

`eadybgc -i <filepath>`

where <filepath> is the path to a model setup script.
"""

from eadybgc.core.driver import eadybgc


def run_from_cli(return_states=False):
    """
    Command line entry point for running the EADYBGC experiment.
    """
    states = eadybgc()
    if return_states:
        return states
    return None


if __name__ == "__main__":
    run_from_cli()
