from .mock_kforcegrip import MOCK_PORT, MockKForceGrip

__all__ = ["MOCK_PORT", "MockKForceGrip"]
