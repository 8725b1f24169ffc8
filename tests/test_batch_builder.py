import io

import pyarrow as pa
import pytest

from bioarrow.containers.record import FastaRecord, GtfRecord, GffRecord, BedRecord, VcfRecord, SamRecord
from bioarrow.errors import InvalidInputError, TypeMismatchError
from bioarrow.io.tabular import GtfReader
from bioarrow.model.attribute import AttributeScanner
from bioarrow.model.batch_builder import FastaBatchBuilder, FastqBatchBuilder, GtfBatchBuilder, GffBatchBuilder, \
    BedBatchBuilder, VcfBatchBuilder, SamBatchBuilder
from bioarrow.model.field import GffField, GtfField

from conftest import GTF


class TestFields:
    def test_defaults(self):
        assert GtfField.default_field_names() == ['seqid', 'source', 'type', 'start', 'end', 'score', 'strand',
                                                  'frame']
        assert GffField.default_field_names()[-1] == 'phase'

    def test_resolve_preserves_order(self):
        assert GtfField.resolve(['end', 'seqid']) == [GtfField.END, GtfField.SEQID]

    def test_resolve_invalid(self):
        with pytest.raises(InvalidInputError, match="Invalid field name: 'chrom'"):
            GtfField.resolve(['chrom'])
        with pytest.raises(InvalidInputError, match="more than once"):
            GtfField.resolve(['start', 'start'])

    def test_phase_reads_frame(self):
        record = GffRecord('chr1', None, 'CDS', 1, 9, frame='2')
        assert GffField.PHASE.get(record) == '2'


class TestBatchBuilder:
    def test_schema_without_records(self):
        schema = FastqBatchBuilder().get_arrow_schema()
        assert schema.names == ['name', 'description', 'sequence', 'quality']
        assert all(f.nullable for f in schema)

    def test_fasta(self):
        builder = FastaBatchBuilder(['sequence', 'name'])
        builder.push(FastaRecord('a', 'x', 'ACGT'))
        builder.push(FastaRecord('b', None, ''))
        assert len(builder) == 2
        batch = builder.finish()
        assert batch.schema.names == ['sequence', 'name']
        assert batch.schema.field('sequence').type == pa.large_string()
        assert batch.to_pydict() == {'sequence': ['ACGT', ''], 'name': ['a', 'b']}
        assert len(builder) == 0

    def test_finish_resets(self):
        builder = BedBatchBuilder(['chrom'])
        builder.push(BedRecord('chr1', 0, 10))
        builder.finish()
        builder.push(BedRecord('chr2', 0, 10))
        assert builder.finish().column(0).to_pylist() == ['chr2']

    def test_empty_finish(self):
        batch = BedBatchBuilder().finish()
        assert batch.num_rows == 0
        assert batch.schema.field('start').type == pa.int64()

    def test_no_columns(self):
        with pytest.raises(InvalidInputError, match="At least one column"):
            FastaBatchBuilder([])


class TestAttributeBatchBuilder:
    def test_no_attribute_defs(self):
        assert GtfBatchBuilder().get_arrow_schema().names == GtfField.default_field_names()

    def test_attributes_struct(self):
        builder = GtfBatchBuilder(['seqid', 'start'], {'gene_name': 'String', 'gene_id': 'String'})
        schema = builder.get_arrow_schema()
        assert schema.names == ['seqid', 'start', 'attributes']
        assert schema.field('attributes').type == pa.struct([
            pa.field('gene_id', pa.string()), pa.field('gene_name', pa.string())
        ])

    def test_attribute_values(self):
        builder = GtfBatchBuilder(['type'], [('gene_id', 'String'), ('gene_name', 'String'), ('tag', 'String')])
        for record in GtfReader(io.BytesIO(GTF)): builder.push(record)
        batch = builder.finish()
        attributes = batch.column(1).to_pylist()
        assert attributes[0] == {'gene_id': 'g1', 'gene_name': 'A', 'tag': None}
        assert attributes[1] == {'gene_id': 'g1', 'gene_name': None, 'tag': None}
        # First occurrence of a repeated key
        assert attributes[3]['tag'] == 'basic'

    def test_inferred_gene_id(self):
        records = [GtfRecord('chr1', None, 'gene', 1, 10, attributes=[('gene_id', 'g1')]),
                   GtfRecord('chr1', None, 'gene', 20, 30, attributes=[('gene_id', 'g2')])]
        scanner = AttributeScanner()
        for record in records: scanner.push(record)
        assert scanner.collect() == [('gene_id', 'String')]
        builder = GtfBatchBuilder(['start'], scanner.collect())
        for record in records: builder.push(record)
        column = builder.finish().column('attributes').field('gene_id')
        assert column.to_pylist() == ['g1', 'g2']
        assert column.null_count == 0

    def test_only_attributes(self):
        builder = GffBatchBuilder([], [('ID', 'String')])
        builder.push(GffRecord('chr1', None, 'gene', 1, 10, attributes=[('ID', 'g1')]))
        assert builder.finish().to_pydict() == {'attributes': [{'ID': 'g1'}]}

    def test_array_attributes(self):
        builder = GffBatchBuilder(['type'], [('Parent', 'Array')])
        builder.push(GffRecord('chr1', None, 'exon', 1, 10, attributes=[('Parent', ['tx1', 'tx2'])]))
        builder.push(GffRecord('chr1', None, 'gene', 1, 10))
        column = builder.finish().column(1)
        assert column.field('Parent').to_pylist() == [['tx1', 'tx2'], None]

    def test_mismatch_appends_nothing(self):
        builder = GffBatchBuilder(['type'], [('ID', 'String'), ('Parent', 'String')])
        builder.push(GffRecord('chr1', None, 'mRNA', 1, 10, attributes=[('ID', 'tx1'), ('Parent', 'g1')]))
        with pytest.raises(TypeMismatchError, match="String builder cannot accept Array"):
            builder.push(GffRecord('chr1', None, 'exon', 1, 10, attributes=[('ID', 'e1'), ('Parent', ['a', 'b'])]))
        assert len(builder) == 1
        batch = builder.finish()
        assert batch.num_rows == 1
        assert batch.column(1).to_pylist() == [{'ID': 'tx1', 'Parent': 'g1'}]

    def test_undeclared_attributes_ignored(self):
        builder = GffBatchBuilder(['type'], [('ID', 'String')])
        builder.push(GffRecord('chr1', None, 'gene', 1, 10, attributes=[('ID', 'g1'), ('Note', 'x')]))
        assert builder.finish().column(1).to_pylist() == [{'ID': 'g1'}]

    def test_invalid_attribute_type(self):
        with pytest.raises(InvalidInputError, match="Invalid attribute type"):
            GtfBatchBuilder(attribute_defs=[('gene_id', 'Int')])


class TestVcfBatchBuilder:
    def test_schema(self):
        schema = VcfBatchBuilder(['pos', 'alt', 'qual'], [('AF', 'Array')]).get_arrow_schema()
        assert schema.names == ['pos', 'alt', 'qual', 'info']
        assert schema.field('alt').type == pa.list_(pa.string())
        assert schema.field('qual').type == pa.float32()

    def test_records(self):
        builder = VcfBatchBuilder(['id', 'alt'], [('AF', 'Array'), ('DB', 'String')])
        builder.push(VcfRecord('chr1', 10, 'rs1', 'A', ['G', 'T'], info=[('AF', ['0.1', '0.2']), ('DB', 'true')]))
        builder.push(VcfRecord('chr1', 20, None, 'C'))
        assert builder.finish().to_pydict() == {
            'id': ['rs1', None], 'alt': [['G', 'T'], []],
            'info': [{'AF': ['0.1', '0.2'], 'DB': 'true'}, {'AF': None, 'DB': None}]
        }


class TestSamBatchBuilder:
    def test_records(self):
        builder = SamBatchBuilder(['qname', 'flag', 'tlen'], [('NM', 'String'), ('ZB', 'Array')])
        builder.push(SamRecord('r1', 99, 'chr1', 5, 60, '4M', tlen=-20, tags=[('NM', '1'), ('ZB', ['1', '2'])]))
        builder.push(SamRecord('r2', 4, None, None))
        batch = builder.finish()
        assert batch.schema.field('flag').type == pa.uint16()
        assert batch.to_pydict() == {
            'qname': ['r1', 'r2'], 'flag': [99, 4], 'tlen': [-20, 0],
            'tags': [{'NM': '1', 'ZB': ['1', '2']}, {'NM': None, 'ZB': None}]
        }

    def test_array_tag_mismatch(self):
        builder = SamBatchBuilder(['qname'], [('ZB', 'Array')])
        with pytest.raises(TypeMismatchError):
            builder.push(SamRecord('r1', 0, 'chr1', 1, tags=[('ZB', '1')]))
        assert len(builder) == 0
