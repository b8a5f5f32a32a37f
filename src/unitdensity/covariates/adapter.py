"""Adapter between the evaluation loop and covariate lookup tables.

The evaluation loop only ever talks to covariates through
:class:`CovariateAdapter`: once per call it asks :meth:`~CovariateAdapter.build`
for a table and its width, then once per time step it asks
:meth:`~CovariateAdapter.interpolate` to fill the shared covariate buffer.
Swapping the adapter (for instance with a call-counting stub in tests)
therefore changes how covariates are produced without touching the loop.
"""

from typing import Any, Tuple

from numpy.typing import NDArray

from unitdensity.covariates.covariate_table import (
    CovariateTable,
    table_lookup,
)


class CovariateAdapter:
    """Default adapter backed by :class:`CovariateTable`."""

    def build(self, model: Any) -> Tuple[CovariateTable, int]:
        """Return the model's covariate table and its covariate count.

        Parameters
        ----------
        model
            Object exposing a ``covar`` attribute holding a
            :class:`CovariateTable` or ``None``.

        Returns
        -------
        tuple[CovariateTable, int]
            The table (an empty one if the model has none) and its width.
        """
        table = getattr(model, "covar", None)
        if table is None:
            table = CovariateTable.empty()
        return table, table.width

    def names(self, table: CovariateTable) -> Tuple[str, ...]:
        """Covariate names in the order :meth:`interpolate` writes them."""
        return tuple(table.names)

    def interpolate(
        self, table: CovariateTable, t: float, out: NDArray
    ) -> None:
        """Write the covariates valid at ``t`` into ``out``."""
        table_lookup(table, t, out)


default_covariate_adapter = CovariateAdapter()
