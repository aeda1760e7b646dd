"""
Configuration of the biogeochemical model coupled to the flow.

The tracer set follows the LOBSTER model: nutrients (NO3, NH4),
phytoplankton (P), zooplankton (Z), small and large particulate organic matter
(sPOM, bPOM) and dissolved organic matter (DOM). With ``carbonates`` the
carbonate system (DIC, Alk) is carried as well, and with
``variable_redfield`` the organic pools are split into separate nitrogen and
carbon tracers (sPON/sPOC, bPON/bPOC, DON/DOC).

The reaction kinetics themselves are external: they are supplied as
``reactions``, a mapping from tracer name to a reaction-term function

    f(x, y, z, t, tracers, biogeochemistry) -> array

which the engine evaluates at every stage of every time step.
"""

BASE_TRACERS = ("NO3", "NH4", "P", "Z")
ORGANIC_TRACERS = ("sPOM", "bPOM", "DOM")
NITROGEN_TRACERS = ("sPON", "bPON", "DON")
CARBON_TRACERS = ("sPOC", "bPOC", "DOC")
CARBONATE_TRACERS = ("DIC", "Alk")

# mol C / mol N
DEFAULT_ORGANIC_REDFIELD = 106 / 16


def constant(value):
    """Return a function of any arguments that always returns ``value``."""

    def function(*args):
        return value

    function.__name__ = f"constant_{value}"
    return function


def get_tracer_names(carbonates=False, variable_redfield=False):
    """Names of the biogeochemical tracers carried for a given set of flags."""
    names = list(BASE_TRACERS)
    if variable_redfield:
        for nitrogen, carbon in zip(NITROGEN_TRACERS, CARBON_TRACERS):
            names.extend([nitrogen, carbon])
    else:
        names.extend(ORGANIC_TRACERS)
    if carbonates:
        names.extend(CARBONATE_TRACERS)
    return tuple(names)


class Biogeochemistry:
    """
    Parameters
    ----------
    carbonates : bool
        Carry the carbonate system tracers (DIC, Alk).
    open_bottom : bool
        Whether sinking material leaves through the bottom of the domain.
        Passed through to the reaction terms and recorded in the output.
    variable_redfield : bool
        Split organic matter into nitrogen and carbon pools.
    organic_redfield : float
        C:N ratio of organic matter, used to convert nitrogen pools into
        carbon pools. Default 106/16.
    surface_par : callable
        Surface photosynthetically active radiation, ``f(x, y, t)``
        [W m^-2].
    temperature, salinity : callable
        Environmental temperature [degC] and salinity [psu],
        ``f(x, y, z, t)``.
    reactions : dict, optional
        Reaction-term functions keyed by tracer name.
    particles : eadybgc.physics.particles.KelpParticles, optional
        Particles coupled to this model.
    """

    # pylint: disable=too-many-arguments
    def __init__(
        self,
        carbonates=False,
        open_bottom=True,
        variable_redfield=False,
        organic_redfield=DEFAULT_ORGANIC_REDFIELD,
        surface_par=constant(100.0),
        temperature=constant(12.0),
        salinity=constant(35.0),
        reactions=None,
        particles=None,
    ):
        self.carbonates = carbonates
        self.open_bottom = open_bottom
        self.variable_redfield = variable_redfield
        self.organic_redfield = organic_redfield
        self.surface_par = surface_par
        self.temperature = temperature
        self.salinity = salinity
        self.reactions = dict(reactions or {})
        self.particles = particles
        unknown = set(self.reactions) - set(self.tracer_names)
        if unknown:
            raise ValueError(
                "eadybgc.physics.biogeochemistry.Biogeochemistry: reaction"
                f" terms given for tracers {sorted(unknown)} that this model"
                f" does not carry ({self.tracer_names})"
            )

    # pylint: enable=too-many-arguments

    @property
    def tracer_names(self):
        return get_tracer_names(self.carbonates, self.variable_redfield)

    def reaction_tendencies(self, nodes, t, tracers):
        """
        Evaluate every reaction term at the cell centres ``nodes``.

        Returns
        -------
        dict
            Tracer name -> reaction tendency, for the tracers that have one.
        """
        x, y, z = nodes
        return {
            name: reaction(x, y, z, t, tracers, self)
            for name, reaction in self.reactions.items()
        }

    def attributes(self):
        """Flags recorded alongside model output."""
        return {
            "carbonates": int(self.carbonates),
            "open_bottom": int(self.open_bottom),
            "variable_redfield": int(self.variable_redfield),
            "organic_redfield": float(self.organic_redfield),
        }
