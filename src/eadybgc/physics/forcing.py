"""
Forcing terms applied to individual tracers.
"""


class Relaxation:
    """
    Restoring forcing ``rate * (target - c)``, pulling a tracer towards a
    target value.

    Parameters
    ----------
    rate : float
        Restoring rate [s^-1], e.g. 1 / (10 days).
    target : float or callable
        Target value, or a function ``target(x, y, z, t)`` evaluated at the
        cell centres.
    """

    def __init__(self, rate, target):
        if rate < 0:
            raise ValueError(
                f"eadybgc.physics.forcing.Relaxation: rate must be >= 0, not"
                f" {rate}"
            )
        self.rate = rate
        self.target = target

    def __call__(self, x, y, z, t, field):
        if callable(self.target):
            target = self.target(x, y, z, t)
        else:
            target = self.target
        return self.rate * (target - field)

    def __repr__(self):
        return f"Relaxation(rate={self.rate}, target={self.target})"
