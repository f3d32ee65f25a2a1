import argparse
import logging

DEFAULT_BLOCK_SIZE = 8 * 1024 * 1024


def main(args=None):
    arguments = _parser(args)
    logging.basicConfig(
        level=logging.DEBUG if arguments.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    _run(arguments)


def _parser(args=None):
    parser = argparse.ArgumentParser(
        prog="blockpress",
        description="Pack a file into a sequence of size-framed "
        "compressed blocks",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument("file", help="A filename")
    parser.add_argument(
        "-o",
        "--outfile",
        help="Save to this filename",
    )
    parser.add_argument(
        "-b",
        "--block-size",
        help="Number of raw bytes compressed into each block",
        type=int,
        default=DEFAULT_BLOCK_SIZE,
    )
    parser.add_argument(
        "-c",
        "--codec",
        help="Compression codec",
        choices=["zlib", "zstd"],
        default="zlib",
    )
    parser.add_argument(
        "-l",
        "--level",
        help="Integer compression level. Defaults to the codec's "
        "balanced setting",
        type=int,
        default=None,
    )
    parser.add_argument(
        "--header-width",
        help="Bit width of each size field in the block header",
        type=int,
        choices=[32, 64],
        default=32,
    )
    parser.add_argument(
        "--override",
        help="Allow overriding existing output files",
        action="store_true",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        help="Log every block written",
        action="store_true",
    )
    return parser.parse_args(args)


def _check_args(args):
    import pathlib

    file = pathlib.Path(args.file)
    if not file.exists() or not file.is_file():
        raise FileNotFoundError(
            f"File {args.file} does not exist or is not a file"
        )
    if args.block_size < 1:
        raise ValueError("--block-size must be positive")
    if args.outfile is None:
        outfile = file.with_name(f"{file.name}.blk")
    else:
        outfile = pathlib.Path(args.outfile)
    if file.resolve() == outfile.resolve():
        raise NotImplementedError(
            "Overriding the input file is not supported."
            "Please specify another output file"
        )
    if outfile.exists() and not args.override:
        raise FileExistsError(
            f"File {args.outfile} exists. Pass --override to override it"
        )
    return file, outfile


def _run(args):
    import blockpress

    file, outfile = _check_args(args)
    if args.header_width == 64:
        header = blockpress.HEADER_U64
    else:
        header = blockpress.HEADER_U32

    with open(file, "rb") as in_fp, blockpress.open(
        outfile,
        "wb",
        max_block_size=args.block_size,
        codec=args.codec,
        level=args.level,
        header=header,
    ) as framer:
        tot = 0
        while True:
            data = in_fp.read(args.block_size)
            if not data and framer.blocks:
                break

            with framer.block() as writer:
                writer.write(data)

            tot += len(data)
            print(f"packing .. {tot//(1024*1024)} MB", end="\r")

            if not data:
                break
        print(" " * 100, end="\r")

        blocks = framer.blocks

    outsize = outfile.stat().st_size
    insize = file.stat().st_size or 1
    print(
        args.file,
        f": {len(blocks)} blocks, {outsize/insize*100:.2f}% "
        f"({insize} => {outsize} bytes)",
        outfile.name,
    )
