import os
import sys
import logging
import socket


# Set up basic logging configuration
logging.basicConfig(level=logging.INFO)

DEFAULT_ISSUER_BASE = "http://localhost:7002"
DEFAULT_VERIFIER_BASE = "http://localhost:7003"
DEFAULT_STANDARD_VERSION = "draft13"


def extract_ip():
    """
    Attempts to determine the local IP address of the machine.
    Falls back to localhost (127.0.0.1) if network detection fails.
    """
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # This doesn't actually connect to the internet, just triggers routing
        s.connect(('10.255.255.255', 1))
        ip = s.getsockname()[0]
    except Exception:
        ip = '127.0.0.1'
    finally:
        s.close()
    return ip


class currentMode:
    """
    Represents the runtime environment configuration for the demo.
    Endpoints of the walt.id issuer / verifier, flow tuning and the
    public URL used in QR codes are all read from the environment.
    """
    def __init__(self, myenv=None):
        self.myenv = myenv or os.getenv("MYENV", "local")

        self.issuer_base = os.getenv("ISSUER_BASE", DEFAULT_ISSUER_BASE).rstrip("/")
        self.verifier_base = os.getenv("VERIFIER_BASE", DEFAULT_VERIFIER_BASE).rstrip("/")
        self.standard_version = os.getenv("STANDARD_VERSION", DEFAULT_STANDARD_VERSION)

        # network and offer polling
        self.timeout = float(os.getenv("HTTP_TIMEOUT", "10"))
        self.offer_retry_attempts = int(os.getenv("OFFER_RETRY_ATTEMPTS", "5"))
        self.offer_retry_delay = float(os.getenv("OFFER_RETRY_DELAY", "0.5"))

        # transaction code for offers that require a user PIN
        self.tx_code = os.getenv("TX_CODE") or None

        # files shared between the command line tools and the QR server
        self.offer_file = os.getenv("OFFER_FILE", "credential-offer.json")
        self.pki_file = os.getenv("PKI_FILE", "mdoc-pki-setup.json")
        self.log_dir = os.getenv("RUN_LOG_DIR", "logs/runs")

        self.port = int(os.getenv("QR_TEST_PORT", "3001"))

        # Define runtime behavior depending on environment
        if self.myenv == 'codespaces':
            # Configuration for GitHub Codespaces, ports are forwarded publicly
            self.codespace_name = os.getenv("CODESPACE_NAME")
            if not self.codespace_name:
                logging.error('CODESPACE_NAME is not set for the codespaces environment.')
                sys.exit(1)
            self.IP = '0.0.0.0'
            self.server = self.public_url(self.port)
        elif self.myenv == 'local':
            # Configuration for local development
            self.IP = extract_ip()
            self.server = f'http://{self.IP}:{self.port}/'
        else:
            logging.error('Invalid environment setting. Choose either "local" or "codespaces".')
            sys.exit(1)

    @property
    def issuer_url(self):
        """Credential issuer identifier, also the audience of proofs."""
        return f"{self.issuer_base}/{self.standard_version}"

    def public_url(self, port):
        if self.myenv == 'codespaces':
            return f"https://{self.codespace_name}-{port}.app.github.dev/"
        return f"http://localhost:{port}/"
