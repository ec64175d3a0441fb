"""httpsify — upgrade plaintext HTTP traffic using HTTPS Everywhere rulesets."""

__version__ = "0.1.0"
