# IRC protocol constants (server identity, numeric replies, reply texts)

SERVER_NAME = "hector.irc"
HOST_MASK = "hector"
SERVER_INFO = "Hard Hecting"

CHANNEL_SIGIL = "#"

# Nicknames: first char a word char, then up to 15 word chars or hyphens.
NICKNAME_PATTERN = r"^\w[\w-]{0,15}$"

# RFC 1459 line limit, CRLF included.
MAX_LINE_BYTES = 512

# Numeric replies
RPL_WELCOME = "001"
RPL_ENDOFWHO = "315"
RPL_WHOISUSER = "311"
RPL_WHOISSERVER = "312"
RPL_WHOISIDLE = "317"
RPL_ENDOFWHOIS = "318"
RPL_WHOISCHANNELS = "319"
RPL_NOTOPIC = "331"
RPL_TOPIC = "332"
RPL_TOPICWHOTIME = "333"
RPL_WHOREPLY = "352"
RPL_NAMREPLY = "353"
RPL_ENDOFNAMES = "366"
RPL_MOTD = "372"
RPL_MOTDSTART = "375"
RPL_ENDOFMOTD = "376"

ERR_NOSUCHNICK = "401"
ERR_CANNOTSENDTOCHAN = "404"
ERR_NOMOTD = "422"
ERR_ERRONEUSNICKNAME = "432"
ERR_NICKNAMEINUSE = "433"
ERR_NEEDMOREPARAMS = "461"
ERR_PASSWDMISMATCH = "464"

# Reply texts clients parse verbatim
TXT_WELCOME = "Welcome to IRC"
TXT_NOMOTD = "MOTD File is missing"
TXT_WHOIS_IDLE = "seconds idle, signon time"
TXT_ENDOFWHOIS = "End of /WHOIS list."
TXT_ENDOFWHO = "End of /WHO list."
TXT_ENDOFNAMES = "End of /NAMES list."
TXT_NOTOPIC = "No topic is set."
TXT_NOSUCHNICK = "No such nick/channel"
TXT_INVALID_PASSWORD = "Invalid password"

DEFAULT_QUIT_MESSAGE = "Connection closed"
