"""Test public API surface - ensure imports work correctly and no side effects.

This test verifies:
- protosql exposes check, reconcile and the loaders at the top level
- _internal is not part of the advertised API
- importing protosql does not configure logging
"""

import logging
import types


def test_api_exports_core_functions():
    from protosql.api import check, discover_proto_files, load_config, load_schema

    for func in (check, discover_proto_files, load_config, load_schema):
        assert isinstance(func, types.FunctionType)


def test_reconcile_is_the_kernel_function():
    import protosql
    from protosql.kernel.reconcile import reconcile

    assert protosql.reconcile is reconcile
    assert "reconcile" in protosql.__all__


def test_errors_share_a_base():
    import protosql

    for name in (
        "ParseError",
        "UnresolvedTypeError",
        "DuplicateMessageError",
        "IntrospectionError",
        "CompatibilityMatrixError",
        "ConfigError",
    ):
        assert issubclass(getattr(protosql, name), protosql.ProtosqlError), name


def test_internal_not_in_public_namespace():
    import protosql
    import protosql._internal.canonical_json  # noqa: F401 - importable for internal use

    assert "_internal" not in protosql.__all__
    assert "canonical_dumps" not in protosql.__all__


def test_import_has_no_logging_side_effects():
    import protosql  # noqa: F401

    # library loggers never install handlers; the CLI configures logging
    for name in ("protosql", "protosql.api", "protosql.kernel.reconcile", "protosql.kernel.introspect"):
        assert logging.getLogger(name).handlers == []
