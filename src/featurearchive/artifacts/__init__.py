"""
Artifact resolution for feature archives.

A provider maps an ArtifactId to a location (a file path, a ``file:`` URL, an
ArtifactHandler or an open binary stream) or ``None`` when the artifact is
unknown. The archive writer only calls providers; it never caches their
answers beyond a single write.
"""
