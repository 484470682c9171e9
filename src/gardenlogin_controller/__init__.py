"""Controller manager keeping exec-credential kubeconfigs of Gardener Shoots up to date."""

__version__ = "0.1.0"
