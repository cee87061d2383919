"""ClinicDesk data service."""
