"""
Output expressions for dependency injection metadata.
"""
from hakoc.identifiers import Identifiers
from hakoc.output.ast import Literal, call, expr


def token_expr(token):
    if token.identifier is not None:
        return expr(token.identifier)
    return Literal(token.value)


def deps_expr(deps):
    """``[(token, optional, self_only, skip_self, host), ...]`` as read by AppView.inject."""
    return expr([
        (token_expr(dep.token), dep.is_optional, dep.is_self, dep.is_skip_self, dep.is_host)
        for dep in deps
    ])


def provider_expr(provider):
    kwargs = {}
    if provider.use_class is not None:
        kwargs["use_class"] = expr(provider.use_class.reference)
        kwargs["deps"] = deps_expr(provider.use_class.di_deps)
    elif provider.use_factory is not None:
        kwargs["use_factory"] = expr(provider.use_factory.reference)
        kwargs["deps"] = deps_expr(provider.use_factory.di_deps)
    elif provider.use_existing is not None:
        kwargs["use_existing"] = token_expr(provider.use_existing)
    else:
        kwargs["use_value"] = expr(provider.use_value)
    if provider.multi:
        kwargs["multi"] = True
    return call(expr(Identifiers.provider), token_expr(provider.token), **kwargs)
