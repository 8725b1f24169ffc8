import gzip
import io
from importlib import import_module

import pytest

from bioarrow import ParserWarning, RESOURCES
from bioarrow.containers.record import FastaRecord, FastqRecord, SamRecord, cigar_reference_length
from bioarrow.core.region import Region
from bioarrow.errors import ParserError, InvalidInputError, IndexLookupError
from bioarrow.io.index import FaiEntry, FaiIndex, LinearIndex
from bioarrow.io.seq import FastaReader, FastqReader
from bioarrow.io.tabular import AttributeParser, GtfReader, GffReader, BedReader, VcfHeader, VcfReader, SamReader

from conftest import FASTA, FASTQ, GTF, GFF, BED, VCF, SAM


class Pipe:
    """A readable, non-seekable stream."""
    def __init__(self, data: bytes):
        self._buffer = io.BytesIO(data)

    def read(self, size=-1): return self._buffer.read(size)
    def readline(self, size=-1): return self._buffer.readline(size)
    def seekable(self): return False
    def close(self): self._buffer.close()


class SmallChunkFastaReader(FastaReader):
    _CHUNK_SIZE = 5


class SmallChunkFastqReader(FastqReader):
    _CHUNK_SIZE = 7


class TestFastaReader:
    def test_records(self):
        records = list(FastaReader(io.BytesIO(FASTA)))
        assert records == [
            FastaRecord('chr1', 'first chromosome', 'ACGTACGTAC'),
            FastaRecord('chr2', None, 'GGGGTT'),
        ]

    def test_small_chunks(self):
        assert list(SmallChunkFastaReader(io.BytesIO(FASTA))) == list(FastaReader(io.BytesIO(FASTA)))

    def test_final_header_without_newline(self):
        records = list(FastaReader(io.BytesIO(b">a\nAC\n>b")))
        assert records == [FastaRecord('a', None, 'AC'), FastaRecord('b', None, '')]

    def test_empty(self):
        assert list(FastaReader(io.BytesIO(b""))) == []

    def test_sequence_before_header(self):
        with pytest.raises(ParserError, match="before the first FASTA header"):
            list(FastaReader(io.BytesIO(b"ACGT\n>a\nAC\n")))

    @pytest.mark.parametrize('data', [b">a\nAC\xffGT\n", b">a\xff\nACGT\n"])
    def test_invalid_bytes(self, data):
        with pytest.raises(ParserError, match="Invalid byte .* in FASTA record 1"):
            list(FastaReader(io.BytesIO(data)))

    def test_open_path(self, fasta_path):
        with FastaReader.open(fasta_path) as reader:
            assert not reader.compressed
            assert reader.seekable()
            assert [r.name for r in reader] == ['chr1', 'chr2']
        assert reader.closed

    def test_caller_stream_left_open(self):
        stream = io.BytesIO(FASTA)
        with FastaReader.open(stream) as reader:
            next(reader)
        assert not stream.closed


class TestFastaQuery:
    @pytest.mark.parametrize('region, sequence', [
        ('chr1:3-6', 'GTAC'),
        ('chr1', 'ACGTACGTAC'),
        ('chr1:10', 'C'),
        ('chr2:5-6', 'TT'),
    ])
    def test_query(self, fasta_path, region, sequence):
        index = FaiIndex.build(fasta_path)
        with FastaReader.open(fasta_path) as reader:
            records = list(reader.query(index, Region.parse(region)))
        assert records == [FastaRecord(region, None, sequence)]

    def test_out_of_bounds(self, fasta_path):
        index = FaiIndex.build(fasta_path)
        with FastaReader.open(fasta_path) as reader:
            with pytest.raises(IndexLookupError):
                list(reader.query(index, Region.parse('chr1:11')))
            with pytest.raises(IndexLookupError):
                list(reader.query(index, Region.parse('chrX')))

    def test_stale_index(self, fasta_path):
        index = FaiIndex([FaiEntry('chr2', 100, 42, 4, 5)])
        with FastaReader.open(fasta_path) as reader:
            with pytest.raises(ParserError, match="stale"):
                list(reader.query(index, Region('chr2')))

    def test_compressed_not_seekable(self, tmp_path):
        path = tmp_path / "genome.fa.gz"
        path.write_bytes(gzip.compress(FASTA))
        index = FaiIndex.build(io.BytesIO(FASTA))
        with FastaReader.open(path) as reader:
            assert reader.compressed
            assert not reader.seekable()
            with pytest.raises(InvalidInputError, match="not seekable"):
                list(reader.query(index, Region('chr1')))

    def test_final_full_line_without_newline(self, tmp_path):
        path = tmp_path / "genome.fa"
        path.write_bytes(b">chr1\nACGT\nACGT")
        index = FaiIndex.build(path)
        with FastaReader.open(path) as reader:
            assert list(reader.query(index, Region.parse('chr1:3-8'))) == [FastaRecord('chr1:3-8', None, 'GTACGT')]


class TestFastqReader:
    def test_records(self):
        records = list(FastqReader(io.BytesIO(FASTQ)))
        assert records == [
            FastqRecord('r1', 'desc one', 'ACGT', 'IIII'),
            FastqRecord('r2', None, 'GG', '!!'),
            FastqRecord('r3', None, 'T', '#'),
        ]

    def test_small_chunks(self):
        assert list(SmallChunkFastqReader(io.BytesIO(FASTQ))) == list(FastqReader(io.BytesIO(FASTQ)))

    def test_missing_final_newline(self):
        assert list(FastqReader(io.BytesIO(b"@r1\nAC\n+\nII"))) == [FastqRecord('r1', None, 'AC', 'II')]

    @pytest.mark.parametrize('data, message', [
        (b"r1\nACGT\n+\nIIII\n", "expected '@'"),
        (b"@r1\nACGT\n-\nIIII\n", "Missing '\\+'"),
        (b"@r1\nACGT\n+\nIII\n", "lengths differ"),
        (b"@r1\nACGT\n+\n", "Truncated FASTQ record 1"),
    ])
    def test_malformed(self, data, message):
        with pytest.raises(ParserError, match=message):
            list(FastqReader(io.BytesIO(data)))

    def test_gzip(self, fastq_gz_path):
        with FastqReader.open(fastq_gz_path) as reader:
            assert reader.compressed
            assert [r.name for r in reader] == ['r1', 'r2', 'r3']

    def test_pipe(self):
        with FastqReader.open(Pipe(FASTQ)) as reader:
            assert not reader.seekable()
            assert len(list(reader)) == 3

    def test_gzip_pipe(self):
        with FastqReader.open(Pipe(gzip.compress(FASTQ))) as reader:
            assert reader.compressed
            assert [r.sequence for r in reader] == ['ACGT', 'GG', 'T']

    @pytest.mark.parametrize('data, record', [(b"@r\xff1\nA\n+\nI\n", 1), (b"@r1\nA\n+\nI\n@r2\nA\n+\n\xe9\n", 2)])
    def test_invalid_bytes(self, data, record):
        with pytest.raises(ParserError, match=f"Invalid byte .* in FASTQ record {record}"):
            list(FastqReader(io.BytesIO(data)))


class TestAttributeParser:
    def test_gtf(self):
        assert AttributeParser.parse_gtf('gene_id "g1"; exon_number 1;') == [('gene_id', 'g1'), ('exon_number', '1')]

    def test_gtf_repeated_keys(self):
        assert AttributeParser.parse_gtf('tag "a"; tag "b"') == [('tag', 'a'), ('tag', 'b')]

    @pytest.mark.parametrize('text', ['gene_id', 'gene_id "g1" extra'])
    def test_gtf_invalid(self, text):
        with pytest.raises(ParserError, match="Invalid GTF attribute"):
            AttributeParser.parse_gtf(text)

    def test_gff(self):
        assert AttributeParser.parse_gff('ID=gene1;Parent=tx1,tx2;Note=a%2Cb;') == [
            ('ID', 'gene1'), ('Parent', ['tx1', 'tx2']), ('Note', 'a,b')
        ]

    def test_gff_empty(self):
        assert AttributeParser.parse_gff('.') == []

    def test_gff_invalid(self):
        with pytest.raises(ParserError, match="Invalid GFF attribute"):
            AttributeParser.parse_gff('ID=gene1;orphan')


class TestGtfReader:
    def test_records(self):
        records = list(GtfReader(io.BytesIO(GTF)))
        assert len(records) == 4
        gene, exon = records[:2]
        assert (gene.seqid, gene.source, gene.type, gene.start, gene.end) == ('chr1', 'src', 'gene', 1, 1000)
        assert gene.score is None and gene.frame is None and gene.strand == '+'
        assert exon.score == 0.5 and exon.frame == '0'
        assert exon.attributes == [('gene_id', 'g1'), ('exon_number', '1')]
        assert records[3].attributes == [('gene_id', 'g3'), ('tag', 'basic'), ('tag', 'CCDS')]

    def test_too_few_columns(self):
        with pytest.raises(ParserError, match=r"at least 8 columns, found 4 \(line 1\)"):
            list(GtfReader(io.BytesIO(b"chr1\tsrc\tgene\t1\n")))

    def test_bad_position_has_line(self):
        data = GTF + b'chr2\tsrc\tgene\tx\t50\t.\t+\t.\tgene_id "g4";\n'
        with pytest.raises(ParserError, match=r"Invalid position: 'x' \(line 5\)"):
            list(GtfReader(io.BytesIO(data)))

    def test_pipe(self):
        with GtfReader.open(Pipe(GTF)) as reader:
            assert [r.start for r in reader] == [1, 100, 20000, 5]


class TestGffReader:
    def test_records_stop_at_fasta(self):
        with pytest.warns(ParserWarning, match="##FASTA"):
            records = list(GffReader(io.BytesIO(GFF)))
        assert [r.type for r in records] == ['gene', 'mRNA', 'exon', 'gene', 'gene']
        assert records[1].attributes == [('ID', 'tx1'), ('Parent', 'gene1'), ('Dbxref', ['GeneID:1', 'HGNC:5'])]
        assert records[2].frame == '0'

    def test_no_fasta_no_warning(self, recwarn):
        list(GffReader(io.BytesIO(b"chr1\t.\tgene\t1\t10\t.\t+\t.\t.\n")))
        assert not [w for w in recwarn if issubclass(w.category, ParserWarning)]


class TestBedReader:
    def test_records(self):
        records = list(BedReader(io.BytesIO(BED)))
        assert [(r.chrom, r.start, r.end, r.name) for r in records] == [
            ('chr1', 0, 100, 'p1'), ('chr1', 50, 150, 'p2'), ('chr1', 20000, 20100, 'p3'), ('chr2', 10, 20, None)
        ]
        assert records[0].score == 5.0 and records[0].strand == '+'
        assert records[1].score is None
        assert records[2].strand is None

    def test_bad_score(self):
        with pytest.raises(ParserError, match=r"Invalid score: 'high' \(line 1\)"):
            list(BedReader(io.BytesIO(b"chr1\t0\t10\tp\thigh\n")))

    @pytest.mark.skipif(not RESOURCES.has_module('zstandard'), reason="zstandard is not installed")
    def test_zstd(self, tmp_path):
        import zstandard
        path = tmp_path / "peaks.bed.zst"
        path.write_bytes(zstandard.ZstdCompressor().compress(BED))
        with BedReader.open(path) as reader:
            assert reader.compressed
            assert [r.start for r in reader] == [0, 50, 20000, 10]


class TestVcfHeader:
    def test_info_shapes(self):
        header = VcfHeader.from_text(b"".join(l for l in VCF.splitlines(True) if l.startswith(b"#")).decode())
        assert header.attribute_defs() == [('AF', 'Array'), ('DB', 'String'), ('DP', 'String'), ('END', 'String')]
        assert header.samples == ['S1']
        assert len(header) == 8

    def test_parse_info(self):
        header = VcfHeader.from_text('##INFO=<ID=AC,Number=R,Type=Integer,Description="Counts, per allele">')
        assert header.parse_info('AC=3;DB;X=a%3Db;Y=1,2;Z=1') == [
            ('AC', ['3']), ('DB', 'true'), ('X', 'a=b'), ('Y', ['1', '2']), ('Z', '1')
        ]
        assert header.parse_info('.') == []

    def test_info_without_id(self):
        with pytest.raises(ParserError, match="without an ID"):
            VcfHeader.from_text('##INFO=<Number=1,Type=Integer>')


class TestVcfReader:
    def test_records(self):
        reader = VcfReader(io.BytesIO(VCF))
        records = list(reader)
        assert [(r.chrom, r.pos, r.id) for r in records] == [
            ('chr1', 100, 'rs1'), ('chr1', 200, None), ('chr1', 40000, None), ('chr2', 5, 'rs2')
        ]
        snp, deletion, reference, other = records
        assert snp.alt == ['G', 'T'] and snp.qual == 50.0 and snp.filter == 'PASS'
        assert snp.info == [('DP', '10'), ('AF', ['0.25', '0.5']), ('DB', 'true')]
        assert deletion.qual is None and deletion.filter == 'q10'
        assert dict(deletion.info)['NOTE'] == 'a;b'
        assert reference.alt == [] and reference.info == []
        assert dict(other.info)['XS'] == ['1', '2']
        assert reader.header.samples == ['S1']

    def test_end(self):
        snp, deletion, reference, _ = VcfReader(io.BytesIO(VCF))
        assert (snp.end, deletion.end, reference.end) == (100, 205, 40000)
        assert VcfReader.span(deletion) == (199, 205)

    def test_header_only(self):
        reader = VcfReader(io.BytesIO(b"##fileformat=VCFv4.2\n#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\n"))
        assert list(reader) == []
        assert reader.header.samples == []

    def test_error_line_numbers(self):
        data = VCF + b"chr2\tx\t.\tA\tG\t.\t.\t.\n"
        with pytest.raises(ParserError, match=r"Invalid position: 'x' \(line 13\)"):
            list(VcfReader(io.BytesIO(data)))
        with pytest.raises(ParserError, match=r"at least 8 columns, found 3 \(line 9\)"):
            list(VcfReader(io.BytesIO(b"##fileformat=VCFv4.2\n" * 8 + b"chr1\t1\t.\n")))

    def test_query(self, vcf_path):
        index = LinearIndex.build(vcf_path, 'vcf')
        with VcfReader.open(vcf_path) as reader:
            assert [r.pos for r in reader.query(index, Region.parse('chr1:203-210'))] == [200]
            assert [r.pos for r in reader.query(index, Region('chr2'))] == [5]
            assert reader.header.attribute_defs()[0] == ('AF', 'Array')

    def test_pipe(self):
        with VcfReader.open(Pipe(VCF)) as reader:
            assert [r.pos for r in reader] == [100, 200, 40000, 5]


class TestSamReader:
    def test_records(self):
        records = list(SamReader(io.BytesIO(SAM)))
        assert [r.qname for r in records] == ['r1', 'r2', 'r3', 'r4']
        first, second, _, unmapped = records
        assert (first.flag, first.rname, first.pos, first.mapq, first.cigar) == (0, 'chr1', 100, 60, '5S10M2D3M')
        assert first.rnext is None and first.pnext is None and first.tlen == 0
        assert first.tags == [('NM', '2'), ('ZB', ['1', '-2', '3'])]
        assert second.mapq is None and second.rnext == '=' and second.pnext == 30100 and second.tlen == 104
        assert second.qual is None
        assert (unmapped.rname, unmapped.pos, unmapped.cigar, unmapped.end) == (None, None, None, None)

    def test_span(self):
        first, second, _, unmapped = SamReader(io.BytesIO(SAM))
        assert first.end == 114
        assert SamReader.span(first) == (99, 114)
        assert SamReader.span(second) == (29999, 30003)
        assert SamReader.span(unmapped) is None

    def test_empty_b_array(self):
        assert SamReader.parse_tags(['ZB:B:i']) == [('ZB', [])]

    @pytest.mark.parametrize('tag', ['NM:i', '1M:i:2', 'NM:Q:2'])
    def test_invalid_tag(self, tag):
        line = b"r1\t0\tchr1\t1\t60\t4M\t*\t0\t0\tACGT\tIIII\t" + tag.encode() + b"\n"
        with pytest.raises(ParserError, match=r"Invalid SAM tag.*\(line 1\)"):
            list(SamReader(io.BytesIO(line)))

    def test_too_few_columns(self):
        with pytest.raises(ParserError, match=r"at least 11 columns, found 4 \(line 2\)"):
            list(SamReader(io.BytesIO(b"@HD\tVN:1.6\nr1\t0\tchr1\t1\n")))

    def test_query_skips_unplaced(self, sam_path):
        index = LinearIndex.build(sam_path, 'sam')
        assert index.names == ['chr1', 'chr2']
        with SamReader.open(sam_path) as reader:
            assert [r.qname for r in reader.query(index, Region.parse('chr1:110-30000'))] == ['r1', 'r2']
            assert [r.qname for r in reader.query(index, Region('chr2'))] == ['r3']


class TestCigar:
    @pytest.mark.parametrize('cigar, length', [
        ('5S10M2D3M', 15), ('4M', 4), ('3M100N2M', 105), ('2=1X1I2=', 5), ('10H5S', 0), ('*', 0), (None, 0)
    ])
    def test_reference_length(self, cigar, length):
        assert cigar_reference_length(cigar) == length

    @pytest.mark.parametrize('cigar', ['M', '4Q', '4M3'])
    def test_invalid(self, cigar):
        with pytest.raises(ParserError, match="Invalid CIGAR"):
            cigar_reference_length(cigar)

    def test_unaligned_record(self):
        assert SamRecord('r', 4, None, None).end is None


class TestModuleDocs:
    @pytest.mark.parametrize('module', [
        'bioarrow.io.seq', 'bioarrow.io.tabular', 'bioarrow.io.open', 'bioarrow.io.hts',
        'bioarrow.scan.sequence', 'bioarrow.scan.tabular', 'bioarrow.scan.variant', 'bioarrow.scan.alignment',
    ])
    def test_documented(self, module):
        assert import_module(module).__doc__.strip()
