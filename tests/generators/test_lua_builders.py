import pytest

from generators.generator_utils import UnsupportedTypeError
from generators.lua_builders import gen_builders, struct_builder_args, loop_var
from schema_model import StructDef, FieldDef, Type, BaseType
from tests.test_utils import lookup


def test_struct_builder_with_nested_struct_and_padding(monster_schema):
    vec3 = lookup(monster_schema, "MyGame.Example.Vec3")
    assert gen_builders(vec3) == [
        "function Vec3.CreateVec3(builder, x, y, z, test1, test2, test3_a, test3_b)",
        "    builder:Prep(8, 32)",
        "    builder:Pad(2)",
        "    builder:Prep(2, 4)",
        "    builder:Pad(1)",
        "    builder:PrependInt8(test3_b)",
        "    builder:PrependInt16(test3_a)",
        "    builder:Pad(1)",
        "    builder:PrependUint8(test2)",
        "    builder:PrependFloat64(test1)",
        "    builder:Pad(4)",
        "    builder:PrependFloat32(z)",
        "    builder:PrependFloat32(y)",
        "    builder:PrependFloat32(x)",
        "    return builder:Offset()",
        "end",
    ]


def test_struct_builder_with_arrays(arrays_schema):
    array_struct = lookup(arrays_schema, "MyGame.Arrays.ArrayStruct")
    assert gen_builders(array_struct) == [
        "function ArrayStruct.CreateArrayStruct(builder, a, b, c, d_a, d_b, d_c, d_d, e, f)",
        "    builder:Prep(8, 160)",
        "    for _j = 2, 1, -1 do",
        "        builder:PrependInt64(f[_j])",
        "    end",
        "    builder:Pad(4)",
        "    builder:PrependInt32(e)",
        "    for _j = 2, 1, -1 do",
        "        builder:Prep(8, 32)",
        "        for _k = 2, 1, -1 do",
        "            builder:PrependInt64(d_d[_j][_k])",
        "        end",
        "        builder:Pad(5)",
        "        for _k = 2, 1, -1 do",
        "            builder:PrependInt8(d_c[_j][_k])",
        "        end",
        "        builder:PrependInt8(d_b[_j])",
        "        for _k = 2, 1, -1 do",
        "            builder:PrependInt32(d_a[_j][_k])",
        "        end",
        "    end",
        "    builder:Pad(7)",
        "    builder:PrependInt8(c)",
        "    for _j = 15, 1, -1 do",
        "        builder:PrependInt32(b[_j])",
        "    end",
        "    builder:PrependFloat32(a)",
        "    return builder:Offset()",
        "end",
    ]


def test_flattened_argument_names(monster_schema):
    vec3 = lookup(monster_schema, "MyGame.Example.Vec3")
    assert struct_builder_args(vec3) == ["x", "y", "z", "test1", "test2", "test3_a", "test3_b"]
    assert struct_builder_args(vec3, "pos_") == ["pos_x", "pos_y", "pos_z", "pos_test1", "pos_test2",
                                                 "pos_test3_a", "pos_test3_b"]


def test_table_builders(scenario_schema):
    simple = lookup(scenario_schema, "Scenario.Simple")
    assert gen_builders(simple) == [
        "function Simple.Start(builder) builder:StartObject(3) end",
        "function Simple.AddCount(builder, count) builder:PrependInt32Slot(0, count, 0) end",
        "function Simple.AddLabel(builder, label) builder:PrependUOffsetTRelativeSlot(1, label, 0) end",
        "function Simple.AddValues(builder, values) builder:PrependUOffsetTRelativeSlot(2, values, 0) end",
        "function Simple.StartValuesVector(builder, numElems) return builder:StartVector(4, numElems, 4) end",
        "function Simple.End(builder) return builder:EndObject() end",
    ]


def test_table_builders_for_every_variant(monster_schema):
    lines = gen_builders(lookup(monster_schema, "MyGame.Example.Monster"))
    # Deprecated fields keep their slot but get no Add function.
    assert lines[0] == "function Monster.Start(builder) builder:StartObject(21) end"
    assert not any("AddFriendly" in line for line in lines)
    assert "function Monster.AddPos(builder, pos) builder:PrependStructSlot(0, pos, 0) end" in lines
    assert "function Monster.AddMana(builder, mana) builder:PrependInt16Slot(1, mana, 150) end" in lines
    assert "function Monster.AddInventory(builder, inventory) builder:PrependUOffsetTRelativeSlot(5, inventory, 0) end" in lines
    assert "function Monster.StartInventoryVector(builder, numElems) return builder:StartVector(1, numElems, 1) end" in lines
    assert "function Monster.AddTestType(builder, testType) builder:PrependUint8Slot(7, testType, 0) end" in lines
    assert "function Monster.AddTest(builder, test) builder:PrependUOffsetTRelativeSlot(8, test, 0) end" in lines
    assert "function Monster.StartTest4Vector(builder, numElems) return builder:StartVector(4, numElems, 2) end" in lines
    assert ("function Monster.StartTestarrayoftablesVector(builder, numElems) "
            "return builder:StartVector(4, numElems, 4) end") in lines
    assert "function Monster.AddTestbool(builder, testbool) builder:PrependBoolSlot(13, testbool, 1) end" in lines
    assert "function Monster.StartArsenalTypeVector(builder, numElems) return builder:StartVector(1, numElems, 1) end" in lines
    assert "function Monster.Add_end(builder, End) builder:PrependInt32Slot(19, End, 0) end" in lines
    assert "function Monster.AddMaxSpeed(builder, maxSpeed) builder:PrependFloat32Slot(20, maxSpeed, 12.5) end" in lines
    assert lines[-1] == "function Monster.End(builder) return builder:EndObject() end"


def test_add_functions_follow_declaration_order(monster_schema):
    monster = lookup(monster_schema, "MyGame.Example.Monster")
    adds = [line.split("(")[0] for line in gen_builders(monster) if ".Add" in line]
    expected = ["function Monster.Add" + name for name in (
        "Pos", "Mana", "Hp", "Name", "Inventory", "Color", "TestType", "Test", "Test4", "Testarrayofstring",
        "Testarrayoftables", "Enemy", "Testbool", "Race", "FavouriteType", "Favourite", "ArsenalType", "Arsenal",
        "_end", "MaxSpeed")]
    assert adds == expected


def test_array_in_table_is_rejected():
    table = StructDef("Broken")
    table.fields.append(FieldDef("a", Type(BaseType.ARRAY, element=BaseType.INT, fixed_length=2), offset=4))
    with pytest.raises(UnsupportedTypeError):
        gen_builders(table)


def test_loop_vars():
    assert [loop_var(depth) for depth in range(3)] == ["_j", "_k", "_l"]
    with pytest.raises(UnsupportedTypeError):
        loop_var(8)
