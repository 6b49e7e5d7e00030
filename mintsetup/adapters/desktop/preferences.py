"""
Preference adapter — desktop settings through a PreferenceStore.

Key names drift across Cinnamon/Nemo/Muffin releases, so a preference
lists candidate ``schema::key`` targets and the first one present on
this system is used. No candidate present means the preference does
not apply here: the resource is skipped, never failed.
"""

from __future__ import annotations

import logging

from mintsetup.adapters.base import Adapter, ExecutionContext
from mintsetup.adapters.desktop.gsettings import PreferenceStore
from mintsetup.core.domain.values import format_gvariant, values_equal
from mintsetup.core.errors import MintSetupError, UnsupportedEnvironment
from mintsetup.core.models.outcome import Outcome
from mintsetup.core.models.resource import ResourceKind
from mintsetup.core.models.specs import PreferenceSpec, PreferenceTarget

logger = logging.getLogger(__name__)


def resolve_target(spec: PreferenceSpec, store: PreferenceStore) -> PreferenceTarget:
    """First candidate whose schema and key exist in ``store``.

    Raises:
        UnsupportedEnvironment: none of the candidates exists.
    """
    candidates = spec.candidates()
    for target in candidates:
        if store.has_key(target.schema_name, target.key):
            return target
    tried = ", ".join(str(t) for t in candidates)
    raise UnsupportedEnvironment(f"no matching preference key ({tried})")


class PreferenceAdapter(Adapter):
    """Reads, compares and writes one preference value."""

    def __init__(self, store: PreferenceStore, available: bool | None = None):
        self._store = store
        self._available = available

    @property
    def name(self) -> str:
        return "gsettings"

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.PREFERENCE

    def is_available(self) -> bool:
        if self._available is not None:
            return self._available
        check = getattr(self._store, "is_available", None)
        return bool(check()) if check else True

    def probe(self, context: ExecutionContext) -> bool:
        spec: PreferenceSpec = context.spec
        target = resolve_target(spec, self._store)
        try:
            current = self._store.get(target.schema_name, target.key)
        except UnsupportedEnvironment:
            raise
        except MintSetupError:
            return False
        return values_equal(current, spec.desired(current))

    def apply(self, context: ExecutionContext) -> Outcome:
        spec: PreferenceSpec = context.spec
        target = resolve_target(spec, self._store)
        meta = {"target": str(target)}

        if spec.require_writable and not self._store.writable(target.schema_name, target.key):
            return self.skipped(context, f"{target} is not writable", metadata=meta)

        try:
            current = self._store.get(target.schema_name, target.key)
            desired = spec.desired(current)
            if values_equal(current, desired):
                return self.skipped(context, f"{target} already set", metadata=meta)
            self._store.set(target.schema_name, target.key, desired)
        except UnsupportedEnvironment:
            raise
        except MintSetupError as e:
            return self.failed(context, str(e), metadata=meta)
        except TypeError as e:
            return self.failed(context, f"{target}: {e}", metadata=meta)

        logger.info("Set %s = %s", target, format_gvariant(desired))
        return self.applied(context, reason=f"{target} = {format_gvariant(desired)}", metadata=meta)
