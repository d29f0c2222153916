"""Host-side installer: detection, boot image build, GRUB entries."""
