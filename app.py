import argparse
import atexit
import logging
from typing import Optional, Sequence

from flask import Flask, jsonify, request, send_file, url_for
from werkzeug.exceptions import HTTPException

from cache import PosterCacheStore
from config import Config
from errors import InternalError, PosterServiceError, ValidationError
from pipeline import PosterPipeline
from scraper import ImageFetcher, ScraperSession, TMDBPosterResolver, detect_mimetype
from submissions import SubmissionLogger

logger = logging.getLogger(__name__)


def build_pipeline(config: Config) -> PosterPipeline:
    store = PosterCacheStore(config.cache_file).open()
    session = ScraperSession(timeout=config.request_timeout)
    return PosterPipeline(
        store=store,
        resolver=TMDBPosterResolver(session),
        fetcher=ImageFetcher(session, config.downloads_dir),
    )


def create_app(config: Optional[Config] = None,
               pipeline: Optional[PosterPipeline] = None,
               submissions: Optional[SubmissionLogger] = None) -> Flask:
    config = config or Config.from_env()
    config.ensure_directories()

    if pipeline is None:
        pipeline = build_pipeline(config)
    if submissions is None:
        submissions = SubmissionLogger(
            config.submissions_html,
            config.submissions_json,
            max_field_length=config.max_field_length,
        )
    submissions.ensure_files()

    app = Flask(__name__)
    app.config["POSTER_CONFIG"] = config
    app.extensions["poster_pipeline"] = pipeline
    app.extensions["submission_logger"] = submissions

    @app.errorhandler(PosterServiceError)
    def handle_service_error(error: PosterServiceError):
        if error.status_code >= 500:
            logger.error(f"Error: {error.message} ({error.details})")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unhandled error while serving request")
        internal = InternalError("An unexpected error occurred", details=str(error))
        return jsonify(internal.to_dict()), internal.status_code

    @app.route('/', methods=['GET'])
    def home():
        return jsonify({
            "message": "Movie Poster Scraper API",
            "usage": "GET /poster?movie=MovieName",
            "example": "GET /poster?movie=Inception",
            "endpoints": {
                "/poster?movie=<title>": "Download (or serve from cache) the poster for a movie",
                "/submit?<key>=<value>": "Store a key/value submission",
                "/data": "List all submissions",
                "/submissions": "HTML view of all submissions",
                "/delete-all": "Delete all submissions",
            },
        })

    @app.route('/poster', methods=['GET'])
    def poster():
        result = pipeline.get_poster(request.args.get('movie'))
        response = send_file(result.path, mimetype=detect_mimetype(result.path))
        response.headers["X-Cache"] = "HIT" if result.cache_hit else "MISS"
        return response

    @app.route('/submit', methods=['GET'])
    def submit():
        record = request.args.to_dict()
        issues = submissions.validate(record)
        if issues:
            raise ValidationError("Invalid submission", details=issues)

        submissions.append(record)
        return jsonify({
            "success": True,
            "message": f"Stored {len(record)} field(s)",
            "viewAt": url_for('view_submissions', _external=True),
        })

    @app.route('/data', methods=['GET'])
    def data():
        records = submissions.list_all()
        return jsonify({"total": len(records), "submissions": records})

    @app.route('/submissions', methods=['GET'])
    def view_submissions():
        submissions.ensure_files()
        return send_file(submissions.html_path, mimetype="text/html")

    @app.route('/delete-all', methods=['GET'])
    def delete_all():
        submissions.reset_all()
        return jsonify({"success": True, "message": "All submissions deleted"})

    return app


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Movie poster scraper and submission logger.")
    parser.add_argument("--host", default=None, help="Interface to bind (default: $HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Port to listen on (default: $PORT or 2525)")
    parser.add_argument("--debug", action="store_true", help="Run Flask in debug mode")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config = Config.from_env()
    host = args.host or config.host
    port = args.port or config.port

    pipeline = build_pipeline(config)
    atexit.register(pipeline.store.close)
    app = create_app(config, pipeline=pipeline)

    logger.info(f"Server is running on http://localhost:{port}")
    logger.info(f"Usage: GET http://localhost:{port}/poster?movie=YourMovieName")
    app.run(host=host, port=port, debug=args.debug, threaded=True)


if __name__ == '__main__':
    main()
