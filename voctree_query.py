import argparse
import sys
from pathlib import Path

from pydantic import ValidationError

from config import QueryConfig, ReportTarget
from errors import VoctreeError
from retriever import run

DESCRIPTION = """\
Creates a database with a provided dataset of image descriptors using a trained
vocabulary tree, then queries it with another set of images to retrieve, for each
of them, the most similar images of the dataset. Without a query set the database
is queried with the images used to build it (sanity check).

Inputs are either a list.txt file (one image per line) or an sfm_data .json file;
the .desc files are expected in the same directory as the input file.

With --outdir, a directory named after each query image is created, holding symbolic
links to its matches named matchNumber.filename, matchNumber being the rank of the
match (0000, 0001, ...).
"""


def build_parser():
    parser = argparse.ArgumentParser(
        prog="voctree-query",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", type=int, default=1, help="Verbosity level, 0 to mute")
    parser.add_argument(
        "-w", "--weights", type=Path,
        help="Weights file; if not provided the weights are computed on the database built with the provided set",
    )
    parser.add_argument("-t", "--tree", type=Path, required=True, help="Vocabulary tree file")
    parser.add_argument(
        "-l", "--keylist", type=Path, required=True,
        help="List file or sfm_data .json containing the features used to build the database",
    )
    parser.add_argument("-q", "--querylist", type=Path, help="List file or sfm_data .json used to query the database")
    parser.add_argument(
        "--saveDocumentMap", dest="document_map", type=Path,
        help="A matlab .m file where to save the document map of the created database",
    )
    parser.add_argument(
        "--outdir", type=Path,
        help="Directory in which to save the symlinks of the similar images (created if it does not exist)",
    )
    parser.add_argument(
        "-r", dest="num_results", type=int, default=10,
        help="The number of matches to retrieve for each image, 0 to retrieve all the images",
    )
    parser.add_argument("--matlab", action="store_true", help="Produce an output readable by matlab")
    parser.add_argument("-o", "--outfile", type=Path, help="Name of the output file")
    return parser


def config_from_args(args) -> QueryConfig:
    report = ReportTarget(path=args.outfile, matlab=args.matlab) if args.outfile else None
    return QueryConfig(
        tree=args.tree,
        keylist=args.keylist,
        weights=args.weights,
        querylist=args.querylist,
        report=report,
        outdir=args.outdir,
        document_map=args.document_map,
        num_results=args.num_results,
        verbosity=args.verbose,
    )


def main(argv=None):
    parser = build_parser()
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        parser.print_help()
        return 0

    args = parser.parse_args(argv)
    try:
        config = config_from_args(args)
    except ValidationError as e:
        print(f"ERROR: {e}\n", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 1

    try:
        run(config)
    except VoctreeError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
