import pytest

from elasticctl.errors import BundleNotFound, CertsSourceNotFound
from elasticctl.modules.certs import CertificateTransfer


@pytest.fixture
def transfer(runtime):
    return CertificateTransfer(runtime)


@pytest.fixture
def bundle(runtime):
    runtime.create_volume("clusterofrooks_certs")
    root = runtime.volumes["clusterofrooks_certs"]
    (root / "ca").mkdir()
    (root / "ca" / "ca.crt").write_text("CA CERT")
    (root / "rook1").mkdir()
    (root / "rook1" / "rook1.key").write_text("KEY")
    return "clusterofrooks_certs"


def tree(path):
    return {
        str(p.relative_to(path)): p.read_text()
        for p in sorted(path.rglob("*"))
        if p.is_file()
    }


def test_export_then_import_preserves_tree(transfer, runtime, bundle, tmp_path):
    dest = tmp_path / "certs-export"
    transfer.export_bundle(bundle, dest)
    assert tree(dest) == {"ca/ca.crt": "CA CERT", "rook1/rook1.key": "KEY"}

    # Same bundle on another host
    other = CertificateTransfer(type(runtime)(tmp_path / "other-host"))
    other.import_bundle(dest, bundle)
    assert other.has_bundle(bundle)
    assert tree(other.runtime.volumes[bundle]) == tree(runtime.volumes[bundle])


def test_export_creates_destination(transfer, bundle, tmp_path):
    dest = tmp_path / "nested" / "certs-export"
    assert transfer.export_bundle(bundle, dest) == dest
    assert (dest / "ca" / "ca.crt").is_file()


def test_export_overwrites_existing_files(transfer, bundle, tmp_path):
    dest = tmp_path / "certs-export"
    (dest / "ca").mkdir(parents=True)
    (dest / "ca" / "ca.crt").write_text("stale")
    transfer.export_bundle(bundle, dest)
    assert (dest / "ca" / "ca.crt").read_text() == "CA CERT"


def test_export_without_bundle(transfer, tmp_path):
    with pytest.raises(BundleNotFound) as excinfo:
        transfer.export_bundle("clusterofrooks_certs", tmp_path / "certs-export")
    assert excinfo.value.bundle_id == "clusterofrooks_certs"
    assert not (tmp_path / "certs-export").exists()


def test_import_missing_source(transfer, runtime, tmp_path):
    with pytest.raises(CertsSourceNotFound):
        transfer.import_bundle(tmp_path / "nowhere", "clusterofrooks_certs")
    assert runtime.called("create_volume") == []


def test_import_into_existing_volume(transfer, runtime, bundle, tmp_path):
    source = tmp_path / "incoming"
    (source / "ca").mkdir(parents=True)
    (source / "ca" / "ca.crt").write_text("NEW CA")
    transfer.import_bundle(source, bundle)
    assert (runtime.volumes[bundle] / "ca" / "ca.crt").read_text() == "NEW CA"
    assert (runtime.volumes[bundle] / "rook1" / "rook1.key").is_file()
