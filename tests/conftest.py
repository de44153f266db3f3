import pytest

from perilla.perilla_precedence import PrecedenceTable


@pytest.fixture
def power_table() -> PrecedenceTable:
    """Operator table with `^` registered above `*`."""
    table = PrecedenceTable()
    table.register("^", 500)
    return table
