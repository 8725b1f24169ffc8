import gzip

import pytest


# Constants ------------------------------------------------------------------------------------------------------------
# chr1: 10 bp, chr2: 6 bp, 4 bases per line
FASTA = b">chr1 first chromosome\nACGT\nACGT\nAC\n>chr2\nGGGG\nTT\n"

FASTQ = b"@r1 desc one\nACGT\n+\nIIII\n@r2\nGG\n+r2\n!!\n@r3\nT\n+\n#\n"

GTF = (
    b'chr1\tsrc\tgene\t1\t1000\t.\t+\t.\tgene_id "g1"; gene_name "A";\n'
    b'chr1\tsrc\texon\t100\t200\t0.5\t+\t0\tgene_id "g1"; exon_number 1;\n'
    b'chr1\tsrc\tgene\t20000\t30000\t.\t-\t.\tgene_id "g2";\n'
    b'chr2\tsrc\tgene\t5\t50\t.\t+\t.\tgene_id "g3"; tag "basic"; tag "CCDS";\n'
)

GFF = (
    b"##gff-version 3\n"
    b"##sequence-region chr1 1 50000\n"
    b"chr1\t.\tgene\t1\t1000\t.\t+\t.\tID=gene1;Name=A\n"
    b"chr1\t.\tmRNA\t1\t1000\t.\t+\t.\tID=tx1;Parent=gene1;Dbxref=GeneID:1,HGNC:5\n"
    b"chr1\t.\texon\t1\t100\t.\t+\t0\tID=ex1;Parent=tx1;Note=a%2Cb\n"
    b"chr1\t.\tgene\t40000\t41000\t.\t-\t.\tID=gene2\n"
    b"chr2\t.\tgene\t10\t20\t.\t+\t.\tID=gene3;Dbxref=GeneID:3,HGNC:9\n"
    b"##FASTA\n"
    b">chr1\n"
    b"ACGT\n"
)

# Byte offsets: p1 17, p2 35, p3 54, chr2 79, end 90
BED = (
    b"track name=peaks\n"
    b"chr1\t0\t100\tp1\t5\t+\n"
    b"chr1\t50\t150\tp2\t.\t-\n"
    b"chr1\t20000\t20100\tp3\t10\t.\n"
    b"chr2\t10\t20\n"
)

# Sorted; the chr1 deletion at 200 ends at 205 through END
VCF = (
    b"##fileformat=VCFv4.2\n"
    b"##contig=<ID=chr1,length=100000>\n"
    b"##contig=<ID=chr2,length=50000>\n"
    b'##INFO=<ID=DP,Number=1,Type=Integer,Description="Total depth">\n'
    b'##INFO=<ID=AF,Number=A,Type=Float,Description="Allele frequency">\n'
    b'##INFO=<ID=DB,Number=0,Type=Flag,Description="dbSNP membership">\n'
    b'##INFO=<ID=END,Number=1,Type=Integer,Description="End position">\n'
    b"#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\tFORMAT\tS1\n"
    b"chr1\t100\trs1\tA\tG,T\t50\tPASS\tDP=10;AF=0.25,0.5;DB\tGT\t0/1\n"
    b"chr1\t200\t.\tACGTAC\tA\t.\tq10\tDP=3;END=205;NOTE=a%3Bb\tGT\t1/1\n"
    b"chr1\t40000\t.\tC\t.\t.\t.\t.\tGT\t0/0\n"
    b"chr2\t5\trs2\tG\tA\t20\tPASS\tDP=7;XS=1,2\tGT\t0/1\n"
)

# r4 is unmapped and sorts last
SAM = (
    b"@HD\tVN:1.6\tSO:coordinate\n"
    b"@SQ\tSN:chr1\tLN:100000\n"
    b"@SQ\tSN:chr2\tLN:50000\n"
    b"r1\t0\tchr1\t100\t60\t5S10M2D3M\t*\t0\t0\tACGTACGTACGTACGTAC\tIIIIIIIIIIIIIIIIII\tNM:i:2\tZB:B:s,1,-2,3\n"
    b"r2\t16\tchr1\t30000\t255\t4M\t=\t30100\t104\tACGT\t*\tNM:i:0\tRG:Z:grp1\n"
    b"r3\t0\tchr2\t10\t30\t4M\t*\t0\t0\tGGGG\tIIII\n"
    b"r4\t4\t*\t0\t0\t*\t*\t0\t0\tTTTT\tIIII\n"
)


# Fixtures -------------------------------------------------------------------------------------------------------------
@pytest.fixture
def fasta_path(tmp_path):
    path = tmp_path / "genome.fa"
    path.write_bytes(FASTA)
    return path


@pytest.fixture
def fastq_path(tmp_path):
    path = tmp_path / "reads.fq"
    path.write_bytes(FASTQ)
    return path


@pytest.fixture
def fastq_gz_path(tmp_path):
    path = tmp_path / "reads.fq.gz"
    path.write_bytes(gzip.compress(FASTQ))
    return path


@pytest.fixture
def gtf_path(tmp_path):
    path = tmp_path / "genes.gtf"
    path.write_bytes(GTF)
    return path


@pytest.fixture
def gff_path(tmp_path):
    path = tmp_path / "features.gff3"
    path.write_bytes(GFF)
    return path


@pytest.fixture
def bed_path(tmp_path):
    path = tmp_path / "peaks.bed"
    path.write_bytes(BED)
    return path


@pytest.fixture
def vcf_path(tmp_path):
    path = tmp_path / "calls.vcf"
    path.write_bytes(VCF)
    return path


@pytest.fixture
def sam_path(tmp_path):
    path = tmp_path / "aligned.sam"
    path.write_bytes(SAM)
    return path
