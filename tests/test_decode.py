"""Tests for sign extension and the InstructionDecoder."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from lc3_vm.decode import InstructionDecoder, DecodeResult, sign_extend


class TestSignExtend:
    """Test two's complement widening of immediate fields."""

    @pytest.mark.parametrize("width", [5, 6, 9, 11])
    def test_positive_values_unchanged(self, width):
        for value in (0, 1, (1 << (width - 1)) - 1):
            assert sign_extend(value, width) == value

    @pytest.mark.parametrize("width", [5, 6, 9, 11])
    def test_negative_values_extended(self, width):
        for value in (1 << (width - 1), (1 << width) - 1):
            assert sign_extend(value, width) == (value | (0xFFFF << width)) & 0xFFFF

    def test_minus_one(self):
        assert sign_extend(0x1F, 5) == 0xFFFF

    def test_most_negative_offset9(self):
        assert sign_extend(0x100, 9) == 0xFF00


class TestDecodeResultDataclass:
    """Test DecodeResult structure."""

    def test_valid_result(self):
        result = DecodeResult("OP_ADD", {"dest": 0}, True)
        assert result.key == "OP_ADD"
        assert result.params == {"dest": 0}
        assert result.valid is True
        assert result.error is None

    def test_invalid_result(self):
        result = DecodeResult("OP_RES", {}, False, error="Unknown")
        assert result.valid is False
        assert result.error == "Unknown"


class TestDecodeOperate:
    """Test ADD, AND and NOT decoding."""

    @pytest.fixture
    def decoder(self):
        return InstructionDecoder()

    def test_add_immediate(self, decoder):
        """ADD R0, R1, #5."""
        result = decoder.decode(0x1065)
        assert result.valid is True
        assert result.key == "OP_ADD"
        assert result.params == {"dest": 0, "src1": 1, "imm": True, "value": 5}
        assert result.raw_instruction == 0x1065

    def test_add_register(self, decoder):
        """ADD R2, R3, R4."""
        result = decoder.decode(0x14C4)
        assert result.key == "OP_ADD"
        assert result.params == {"dest": 2, "src1": 3, "imm": False, "src2": 4}

    def test_add_negative_immediate(self, decoder):
        """ADD R0, R0, #-1."""
        result = decoder.decode(0x103F)
        assert result.params["value"] == 0xFFFF

    def test_and_immediate_zero(self, decoder):
        """AND R0, R0, #0."""
        result = decoder.decode(0x5020)
        assert result.key == "OP_AND"
        assert result.params == {"dest": 0, "src1": 0, "imm": True, "value": 0}

    def test_not(self, decoder):
        """NOT R4, R5."""
        result = decoder.decode(0x997F)
        assert result.key == "OP_NOT"
        assert result.params == {"dest": 4, "src": 5}


class TestDecodeDataMovement:
    """Test load/store decoding."""

    @pytest.fixture
    def decoder(self):
        return InstructionDecoder()

    def test_ld(self, decoder):
        assert decoder.decode(0x2401).params == {"dest": 2, "offset": 1}

    def test_ldi(self, decoder):
        result = decoder.decode(0xA002)
        assert result.key == "OP_LDI"
        assert result.params == {"dest": 0, "offset": 2}

    def test_lea_negative(self, decoder):
        result = decoder.decode(0xE1FF)
        assert result.key == "OP_LEA"
        assert result.params == {"dest": 0, "offset": 0xFFFF}

    def test_st(self, decoder):
        result = decoder.decode(0x3604)
        assert result.key == "OP_ST"
        assert result.params == {"src": 3, "offset": 4}

    def test_sti(self, decoder):
        result = decoder.decode(0xB3FE)
        assert result.key == "OP_STI"
        assert result.params == {"src": 1, "offset": 0xFFFE}

    def test_ldr_negative_offset(self, decoder):
        """LDR R1, R2, #-3."""
        result = decoder.decode(0x62BD)
        assert result.key == "OP_LDR"
        assert result.params == {"dest": 1, "base": 2, "offset": 0xFFFD}

    def test_str(self, decoder):
        """STR R1, R2, #5."""
        result = decoder.decode(0x7285)
        assert result.key == "OP_STR"
        assert result.params == {"src": 1, "base": 2, "offset": 5}


class TestDecodeControl:
    """Test branch, jump and trap decoding."""

    @pytest.fixture
    def decoder(self):
        return InstructionDecoder()

    def test_br_nzp(self, decoder):
        result = decoder.decode(0x0FFF)
        assert result.key == "OP_BR"
        assert result.params == {"cond": 0x7, "offset": 0xFFFF}

    def test_brz(self, decoder):
        assert decoder.decode(0x0403).params == {"cond": 0x2, "offset": 3}

    def test_jsr_uses_full_11_bit_offset(self, decoder):
        """Bit 10 of PCoffset11 is the sign bit."""
        result = decoder.decode(0x4FFE)
        assert result.key == "OP_JSR"
        assert result.params == {"long": True, "offset": 0xFFFE}

    def test_jsr_most_negative(self, decoder):
        assert decoder.decode(0x4C00).params["offset"] == 0xFC00

    def test_jsrr(self, decoder):
        result = decoder.decode(0x40C0)
        assert result.params == {"long": False, "base": 3}

    def test_ret(self, decoder):
        result = decoder.decode(0xC1C0)
        assert result.key == "OP_JMP"
        assert result.params == {"base": 7}

    def test_trap(self, decoder):
        result = decoder.decode(0xF025)
        assert result.key == "OP_TRAP"
        assert result.params == {"vector": 0x25}


class TestDecodeIllegal:
    """Test reserved opcodes."""

    @pytest.fixture
    def decoder(self):
        return InstructionDecoder()

    @pytest.mark.parametrize("word,key", [(0x8000, "OP_RTI"), (0xD000, "OP_RES"), (0xDFFF, "OP_RES")])
    def test_reserved_opcodes_invalid(self, decoder, word, key):
        result = decoder.decode(word)
        assert result.valid is False
        assert result.key == key
        assert result.error

    def test_every_other_opcode_valid(self, decoder):
        for op in range(16):
            result = decoder.decode(op << 12)
            assert result.valid is (op not in (0x8, 0xD))
            if result.valid:
                assert result.key in InstructionDecoder.VALID_KEYS
