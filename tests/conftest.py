import pytest

from arbor import Renderer


@pytest.fixture
def render():
    """Build a tree synchronously: render(App, components={...}) -> root."""

    def _render(root, **options):
        return Renderer(**options).render_sync(root)

    return _render
