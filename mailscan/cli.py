import argparse
import logging
import json
import sys

from mailscan.core.metadata_extractor import MetadataExtractor
from mailscan.core.risk_scorer import RiskScorer
from mailscan.exceptions import ScanStoreError
from mailscan.logging_utils import configure_logging
from mailscan.schemas import EmailMetadata
from mailscan.services.analysis_service import build_scan_record
from mailscan.services.scan_client import ScanClient

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='mailscan', description='Phishing risk scoring for a single email')
    subparsers = parser.add_subparsers(dest='command', required=True)

    analyze = subparsers.add_parser('analyze', help='Score one email and print the result as JSON')
    source = analyze.add_mutually_exclusive_group()
    source.add_argument('--html', help='Saved HTML of the opened email')
    source.add_argument('--eml', help='Raw .eml message file')
    analyze.add_argument('--sender', help='Sender domain')
    analyze.add_argument('--reply-to', help='Reply-To domain')
    analyze.add_argument('--link', action='append', default=[], help='Link href (repeatable)')
    analyze.add_argument('--log-level', help='Override LOG_LEVEL')
    analyze.add_argument('--post', metavar='URL', help='Also submit the record to a scan store at URL')

    serve = subparsers.add_parser('serve', help='Run the scan store API')
    serve.add_argument('--host', default='127.0.0.1')
    serve.add_argument('--port', type=int, default=8000)

    return parser


def load_metadata(args) -> EmailMetadata:
    extractor = MetadataExtractor()
    if args.html:
        with open(args.html, 'r', encoding='utf-8', errors='replace') as f:
            return extractor.extract_from_html(f.read())
    if args.eml:
        with open(args.eml, 'rb') as f:
            return extractor.extract_from_raw_email(f.read())
    return EmailMetadata(
        sender_domain=args.sender,
        reply_to_domain=args.reply_to,
        links=tuple(args.link),
    )


def run_analyze(args) -> int:
    result = RiskScorer().analyze(load_metadata(args))
    print(json.dumps(result.to_dict(), indent=2))

    if args.post:
        try:
            response = ScanClient(base_url=args.post).submit(build_scan_record(result))
        except ScanStoreError as e:
            logger.error(f"Scan not stored: {e}")
            return 2
        logger.info(f"Scan stored with id {response.get('id')}")
    return 0


def run_serve(args) -> int:
    import uvicorn
    uvicorn.run("mailscan.main:app", host=args.host, port=args.port, reload=False)
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=getattr(args, 'log_level', None))
    if args.command == 'analyze':
        return run_analyze(args)
    return run_serve(args)


if __name__ == "__main__":
    sys.exit(main())
