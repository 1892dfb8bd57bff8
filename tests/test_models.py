import pytest
import pandas as pd
from wafermap.models import Chip, ChipCollection

@pytest.fixture
def collection() -> ChipCollection:
    chips = [
        Chip(id=0, x=-10.0, y=-10.0, width=10.0, height=10.0, inside=False),
        Chip(id=1, x=0.0, y=-10.0, width=10.0, height=10.0, inside=True, number=2),
        Chip(id=2, x=-10.0, y=0.0, width=10.0, height=10.0, inside=True, number=1),
    ]
    return ChipCollection(chips)

def test_to_record_omits_none_and_renames_file_name():
    record = Chip(id=3, x=1.0, y=2.0, width=3.0, height=4.0, inside=False, file_name='a.txt').to_record()
    assert 'number' not in record
    assert record['fileName'] == 'a.txt'
    assert 'file_name' not in record
    assert record['inside'] is False

def test_chip_center():
    assert Chip(id=0, x=-5.0, y=-6.0, width=10.0, height=12.0, inside=True).center == (0.0, 0.0)

def test_update_chip(collection):
    assert collection.update_chip(1, label='A', color='#ff0000')
    chip = collection.get_chip(1)
    assert (chip.label, chip.color, chip.file_name) == ('A', '#ff0000', '')

def test_update_chip_ignores_none_values(collection):
    collection.update_chip(1, label='A')
    collection.update_chip(1, label=None, file_name='f')
    assert collection.get_chip(1).label == 'A'
    assert collection.get_chip(1).file_name == 'f'

def test_update_unknown_chip(collection):
    assert collection.update_chip(42, label='A') is False

@pytest.mark.parametrize("field", ['x', 'inside', 'number', 'id'])
def test_update_rejects_geometry_fields(collection, field):
    with pytest.raises(ValueError):
        collection.update_chip(1, **{field: 1})

def test_collection_protocols(collection):
    assert len(collection) == 3
    assert 2 in collection
    assert 7 not in collection
    assert [chip.id for chip in collection] == [0, 1, 2]
    assert not ChipCollection()

def test_chips_property_is_a_copy(collection):
    chips = collection.chips
    chips.clear()
    assert len(collection) == 3

def test_to_dataframe_inside_only_sorted_by_number(collection):
    df = collection.to_dataframe(inside_only=True)
    assert df['id'].tolist() == [2, 1]
    assert df['number'].tolist() == [1, 2]

def test_to_dataframe_all_chips(collection):
    df = collection.to_dataframe()
    assert len(df) == 3
    assert pd.isna(df.loc[0, 'number'])

def test_empty_dataframe_has_columns():
    df = ChipCollection().to_dataframe()
    assert df.empty
    assert 'file_name' in df.columns

def test_to_records_keeps_collection_order(collection):
    records = collection.to_records()
    assert [r['id'] for r in records] == [0, 1, 2]
    assert 'number' not in records[0]
    assert records[2]['number'] == 1
