"""scribeguard: PHI de-identification and field-level encryption for clinical notes.

Masks PHI in transcripts with reversible ``{{TYPE_ID}}`` tokens before text
leaves the trust boundary, and envelope-encrypts sensitive record fields at rest.
"""

__version__ = "0.3.0"
