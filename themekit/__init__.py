"""Theme asset pipeline: Sass, scripts, images, HTML partials and packaging.

Entry points:

- `themekit.cli`: `themekit build|package|default|html|lint|list-stages`
- `themekit.app.run`: programmatic build and watch sessions
- `themekit.plans`: the fixed build topologies and watch bindings

Generic orchestration primitives live in `buildkit`.
"""

__version__ = "0.1.0"
