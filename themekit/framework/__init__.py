"""Project-specific framework utilities.

`themekit.framework.config` turns the YAML settings document into the immutable
`BuildConfig` every stage receives. Project-agnostic build primitives live in
`buildkit`.
"""
