from .resolver import VersionResolver, namespace_probe, resolve_version, version_schema_name

__all__ = [
    "VersionResolver",
    "namespace_probe",
    "resolve_version",
    "version_schema_name",
]
