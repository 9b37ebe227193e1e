"""Certificate bundle export and import.

A bundle is the certificate volume the master's setup container fills. It is
treated as an opaque directory tree: nothing here inspects certificates.
"""
import logging
from pathlib import Path

from ..errors import BundleNotFound, CertsSourceNotFound

logger = logging.getLogger("elasticctl.certs")


class CertificateTransfer:
    """Moves a certificate bundle between a docker volume and a host directory."""

    def __init__(self, runtime):
        self.runtime = runtime

    def has_bundle(self, bundle_id: str) -> bool:
        return self.runtime.volume_exists(bundle_id)

    def export_bundle(self, bundle_id: str, dest_path: Path) -> Path:
        """Copy the bundle's contents into ``dest_path``, creating it if needed.

        Raises:
            BundleNotFound: If the bundle volume does not exist
        """
        if not self.has_bundle(bundle_id):
            raise BundleNotFound(bundle_id)

        dest_path = Path(dest_path)
        dest_path.mkdir(parents=True, exist_ok=True)
        logger.info("📦 Extracting certificates from volume %s...", bundle_id)
        self.runtime.copy_tree(bundle_id, dest_path)
        logger.info("✅ Certificates exported to %s", dest_path)
        return dest_path

    def import_bundle(self, src_path: Path, bundle_id: str) -> None:
        """Create the bundle volume if absent and copy ``src_path`` into it.

        Raises:
            CertsSourceNotFound: If ``src_path`` is not a directory
        """
        src_path = Path(src_path)
        if not src_path.is_dir():
            raise CertsSourceNotFound(src_path)

        logger.info("Creating volume %s for certificates...", bundle_id)
        self.runtime.create_volume(bundle_id)
        logger.info("Copying certificates from %s...", src_path)
        self.runtime.copy_tree(src_path, bundle_id)
        logger.info("✅ Certificates imported into %s", bundle_id)
